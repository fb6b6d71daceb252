"""Entity store package."""

from reseller_ledger.store.entity_store import EntityStore

__all__ = ["EntityStore"]
