"""Local-to-cloud migration package."""

from reseller_ledger.migration.coordinator import MigrationCoordinator, MigrationReport

__all__ = ["MigrationCoordinator", "MigrationReport"]
