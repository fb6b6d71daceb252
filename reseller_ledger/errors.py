"""
Ledger Error Taxonomy

DESIGN DECISION: Every failure the ledger surfaces belongs to a closed set
of kinds. Callers branch on the exception class (or its `kind`) and never
on message text.

Each error carries a `user_message` that is safe to show directly to the
operator. The technical detail stays in the exception args for logging.
"""

from enum import Enum
from typing import Optional


class LedgerErrorKind(str, Enum):
    """Closed set of ledger failure kinds."""
    CONFIG_INVALID = "config_invalid"
    NOT_CONNECTED = "not_connected"
    UNAUTHORIZED = "unauthorized"
    PERMISSION_DENIED = "permission_denied"
    MIGRATION_FAILURE = "migration_failure"
    LOCAL_PARSE_FAILURE = "local_parse_failure"
    RECORD_NOT_FOUND = "record_not_found"
    CONFIRMATION_REQUIRED = "confirmation_required"
    TRANSPORT = "transport"


class LedgerError(Exception):
    """Base exception for all ledger operations."""

    kind: LedgerErrorKind
    default_user_message = "Something went wrong."
    retryable = False

    def __init__(self, message: str = "", *, user_message: Optional[str] = None):
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message


class ConfigInvalidError(LedgerError):
    """Remote backend configuration is malformed or incomplete."""

    kind = LedgerErrorKind.CONFIG_INVALID
    default_user_message = (
        "The backend configuration is invalid. "
        "Paste the full config object from your project settings."
    )

    def __init__(
        self,
        message: str = "",
        *,
        fields: Optional[list[str]] = None,
        user_message: Optional[str] = None,
    ):
        self.fields = fields or []
        if user_message is None and self.fields:
            user_message = (
                f"The backend configuration is invalid: check {', '.join(self.fields)}."
            )
        super().__init__(message, user_message=user_message)


class NotConnectedError(LedgerError):
    """Remote operation issued before the backend was initialized."""

    kind = LedgerErrorKind.NOT_CONNECTED
    default_user_message = "The database is not connected."


class UnauthorizedError(LedgerError):
    """Remote write attempted with no signed-in principal."""

    kind = LedgerErrorKind.UNAUTHORIZED
    default_user_message = "Please sign in to save changes to the cloud database."


class PermissionDeniedError(LedgerError):
    """Backend access-control rules rejected a read or write."""

    kind = LedgerErrorKind.PERMISSION_DENIED
    default_user_message = (
        "Permission denied by the database. Check the security rules allow "
        "signed-in users to read and write their own records."
    )


class MigrationFailedError(LedgerError):
    """The atomic migration batch was not committed."""

    kind = LedgerErrorKind.MIGRATION_FAILURE
    default_user_message = "Migration failed. No records were copied; your local data is unchanged."


class LocalParseError(LedgerError):
    """Stored local snapshot could not be parsed."""

    kind = LedgerErrorKind.LOCAL_PARSE_FAILURE
    default_user_message = "Local data was unreadable and has been reset to the sample dataset."


class RecordNotFoundError(LedgerError):
    """Update targeted an id the active backend does not hold."""

    kind = LedgerErrorKind.RECORD_NOT_FOUND
    default_user_message = "That record no longer exists."


class ConfirmationRequiredError(LedgerError):
    """A destructive action was invoked without explicit confirmation."""

    kind = LedgerErrorKind.CONFIRMATION_REQUIRED
    default_user_message = "Please confirm before migrating. Every run copies all local records again."


class TransportError(LedgerError):
    """Backend transport failed for a reason other than access control."""

    kind = LedgerErrorKind.TRANSPORT
    default_user_message = "Could not reach the database. Please try again."
    retryable = True
