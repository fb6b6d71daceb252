"""
Firestore Backend Implementation

DESIGN DECISION: Cloud mode uses Firestore through the Admin SDK because:
1. Live query listeners give every device the latest snapshot
2. Single-document writes and WriteBatch commits are atomic
3. The project's security rules enforce ownership server-side

Each connection gets its own named firebase_admin app, so disconnecting
and reconnecting to a different project never reuses stale state.

Sign-in goes through the identity toolkit password endpoint with the
project's web API key; the returned ID token is verified with the Admin
SDK before the principal is accepted.
"""

import threading
from typing import Any, Optional
from uuid import uuid4

import firebase_admin
import requests
import structlog
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, firestore
from google.api_core import exceptions as gexc
from google.auth import exceptions as google_auth_exceptions
from google.cloud.firestore import FieldFilter, Query
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reseller_ledger.config import RemoteBackendConfig, get_settings
from reseller_ledger.errors import (
    LedgerError,
    NotConnectedError,
    PermissionDeniedError,
    RecordNotFoundError,
    TransportError,
    UnauthorizedError,
)
from reseller_ledger.models.records import Principal
from reseller_ledger.services.storage.interface import (
    Collection,
    DocumentSnapshotCallback,
    ErrorCallback,
    PrincipalCallback,
    RemoteBackend,
    Unsubscribe,
    noop_unsubscribe,
)


SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

_TRANSIENT_EXCEPTIONS = (
    gexc.Aborted,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.ResourceExhausted,
    gexc.ServiceUnavailable,
    gexc.TooManyRequests,
)

_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(_TRANSIENT_EXCEPTIONS),
    reraise=True,
)

logger = structlog.get_logger(__name__)


def translate_google_error(error: Exception, operation: str) -> LedgerError:
    """Map a google.api_core exception onto the ledger taxonomy."""
    if isinstance(error, gexc.PermissionDenied):
        return PermissionDeniedError(f"{operation} rejected by security rules: {error}")
    if isinstance(error, gexc.Unauthenticated):
        return UnauthorizedError(f"{operation} rejected: credentials not accepted: {error}")
    if isinstance(error, gexc.NotFound):
        return RecordNotFoundError(f"{operation} target does not exist: {error}")
    return TransportError(f"{operation} failed: {error}")


class FirebaseAuthProvider:
    """
    Password sign-in against the project's identity toolkit.

    Credentials come from RemoteAuthSettings (LEDGER_AUTH_*).
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self._session = session or requests.Session()
        self._timeout = timeout

    def sign_in(self, api_key: str, app: firebase_admin.App) -> Principal:
        """
        Exchange operator credentials for a verified principal.

        Raises:
            UnauthorizedError: If the provider rejects the credentials or
                the returned token does not verify
            TransportError: If the provider cannot be reached
        """
        auth_settings = get_settings().remote_auth

        try:
            response = self._session.post(
                SIGN_IN_URL,
                params={"key": api_key},
                json={
                    "email": auth_settings.email,
                    "password": auth_settings.password,
                    "returnSecureToken": True,
                },
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Identity provider unreachable: {e}") from e

        if response.status_code != 200:
            try:
                reason = response.json().get("error", {}).get("message", "unknown")
            except ValueError:
                reason = response.text[:200]
            raise UnauthorizedError(
                f"Sign-in rejected: {reason}",
                user_message="Sign-in failed. Check the account email and password.",
            )

        body = response.json()
        try:
            decoded = firebase_auth.verify_id_token(body["idToken"], app=app)
        except (KeyError, ValueError, firebase_auth.InvalidIdTokenError) as e:
            raise UnauthorizedError(f"ID token did not verify: {e}") from e

        uid = str(decoded.get("uid") or decoded.get("sub") or "").strip()
        if not uid:
            raise UnauthorizedError("ID token has no uid")

        return Principal(
            uid=uid,
            email=decoded.get("email") or body.get("email"),
            display_name=body.get("displayName") or None,
        )


class FirestoreBackend(RemoteBackend):
    """Firestore implementation of the remote backend contract."""

    def __init__(self, auth_provider: Optional[FirebaseAuthProvider] = None):
        self._auth_provider = auth_provider or FirebaseAuthProvider()
        self._app: Optional[firebase_admin.App] = None
        self._db = None
        self._config: Optional[RemoteBackendConfig] = None
        self._principal: Optional[Principal] = None
        self._listeners: dict[int, PrincipalCallback] = {}
        self._next_handle = 0
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def initialize(self, config: RemoteBackendConfig) -> bool:
        """Create a dedicated firebase_admin app and Firestore client."""
        try:
            if config.service_account_path:
                cred = credentials.Certificate(config.service_account_path)
            else:
                cred = credentials.ApplicationDefault()

            self._app = firebase_admin.initialize_app(
                cred,
                {"projectId": config.project_id},
                name=f"reseller-ledger-{uuid4().hex[:8]}",
            )
            self._db = firestore.client(app=self._app)
        except (
            ValueError,
            OSError,
            gexc.GoogleAPIError,
            google_auth_exceptions.GoogleAuthError,
        ) as e:
            logger.error(
                "firestore_initialize_failed",
                project_id=config.project_id,
                error=str(e),
            )
            if self._app is not None:
                firebase_admin.delete_app(self._app)
            self._app = None
            self._db = None
            return False

        self._config = config
        logger.info("firestore_initialized", project_id=config.project_id)
        return True

    def shutdown(self) -> None:
        with self._lock:
            self._listeners.clear()
        self._principal = None
        if self._app is not None:
            firebase_admin.delete_app(self._app)
        self._app = None
        self._db = None
        self._config = None

    def _require_db(self):
        if self._db is None:
            raise NotConnectedError("Firestore backend is not initialized")
        return self._db

    # -------------------------------------------------------------------------
    # Principal
    # -------------------------------------------------------------------------

    async def authenticate(self) -> Principal:
        if self._app is None or self._config is None:
            raise NotConnectedError("Cannot sign in before the backend is initialized")

        principal = self._auth_provider.sign_in(self._config.api_key, self._app)
        self._principal = principal
        self._notify_principal(principal)
        return principal

    async def sign_out(self) -> None:
        self._principal = None
        self._notify_principal(None)

    def on_principal_change(self, callback: PrincipalCallback) -> Unsubscribe:
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._listeners[handle] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(handle, None)

        return unsubscribe

    def _notify_principal(self, principal: Optional[Principal]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(principal)

    # -------------------------------------------------------------------------
    # Live queries
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        collection: Collection,
        owner_id: str,
        on_snapshot: DocumentSnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        db = self._require_db()
        query = (
            db.collection(collection.value)
            .where(filter=FieldFilter("ownerId", "==", owner_id))
            .order_by("date", direction=Query.DESCENDING)
        )

        # Watch streams report no errors to the caller; a rejected query
        # (security rules, missing index) only shows up on a plain read
        try:
            query.limit(1).get()
        except gexc.GoogleAPIError as e:
            logger.warning("firestore_subscribe_rejected", collection=collection.value, error=str(e))
            on_error(translate_google_error(e, f"subscribe {collection.value}"))
            return noop_unsubscribe

        def handle_snapshot(documents, changes, read_time) -> None:
            on_snapshot([
                {**(document.to_dict() or {}), "id": document.id}
                for document in documents
            ])

        watch = query.on_snapshot(handle_snapshot)
        return watch.unsubscribe

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @_write_retry
    async def _add(self, collection: Collection, data: dict[str, Any]) -> str:
        _, reference = self._require_db().collection(collection.value).add(data)
        return reference.id

    @_write_retry
    async def _update(self, collection: Collection, document_id: str, data: dict[str, Any]) -> None:
        self._require_db().collection(collection.value).document(document_id).update(data)

    @_write_retry
    async def _delete(self, collection: Collection, document_id: str) -> None:
        self._require_db().collection(collection.value).document(document_id).delete()

    @_write_retry
    async def _commit_batch(self, writes: list[tuple[Collection, dict[str, Any]]]) -> list[str]:
        db = self._require_db()
        batch = db.batch()
        new_ids = []
        for collection, data in writes:
            # Fresh document ids, never the caller's
            reference = db.collection(collection.value).document()
            batch.set(reference, data)
            new_ids.append(reference.id)
        batch.commit()
        return new_ids

    async def add(self, collection: Collection, data: dict[str, Any]) -> str:
        try:
            return await self._add(collection, data)
        except gexc.GoogleAPIError as e:
            raise translate_google_error(e, f"add {collection.value}") from e

    async def update(self, collection: Collection, document_id: str, data: dict[str, Any]) -> None:
        try:
            await self._update(collection, document_id, data)
        except gexc.GoogleAPIError as e:
            raise translate_google_error(e, f"update {collection.value}/{document_id}") from e

    async def delete(self, collection: Collection, document_id: str) -> None:
        try:
            await self._delete(collection, document_id)
        except gexc.GoogleAPIError as e:
            raise translate_google_error(e, f"delete {collection.value}/{document_id}") from e

    async def batch_write(self, writes: list[tuple[Collection, dict[str, Any]]]) -> list[str]:
        try:
            return await self._commit_batch(writes)
        except gexc.GoogleAPIError as e:
            raise translate_google_error(e, "batch write") from e
