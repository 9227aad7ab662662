import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

# Settings are read at import time, so these must be set before fuelwarden loads.
os.environ.setdefault("FIREBASE_PROJECT_ID", "fuelwarden-test")
os.environ.setdefault("FIREBASE_WEB_API_KEY", "test-api-key")

import pytest

from fuelwarden.core.exceptions import (
    AuthError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
)
from fuelwarden.db.store import DELETE, PERMISSIONS_FIELD, READ, UPDATE, is_allowed
from fuelwarden.models.user import AuthUser, Session
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.database import DatabaseService, UserLocks

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class InMemoryDocumentStore:
    """
    Stands in for ``FirestoreDocumentStore`` with the same permission rules.

    Stores created through ``for_principal`` share their documents and call log. Set
    ``failures[method_name]`` to an exception to make that method raise it.
    """

    def __init__(
        self, principal: Optional[str] = None, collections=None, failures=None, calls=None
    ):
        self._principal = principal
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = (
            collections if collections is not None else {}
        )
        self.failures: Dict[str, Exception] = failures if failures is not None else {}
        self.calls: List[str] = calls if calls is not None else []

    @property
    def principal(self) -> Optional[str]:
        return self._principal

    def for_principal(self, principal: str) -> "InMemoryDocumentStore":
        return InMemoryDocumentStore(principal, self.collections, self.failures, self.calls)

    def _enter(self, method: str) -> str:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]
        if not self._principal:
            raise NotAuthenticatedError("The document store has no signed-in principal.")
        return self._principal

    def _collection(self, collection_id: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection_id, {})

    def seed(self, collection_id: str, data: Mapping[str, Any], document_id=None) -> str:
        """Writes a document directly, bypassing validation and permissions."""
        document_id = document_id or uuid.uuid4().hex
        self._collection(collection_id)[document_id] = dict(data)
        return document_id

    async def create_document(
        self, collection_id, data, document_id=None, permissions=None
    ) -> Dict[str, Any]:
        self._enter("create_document")
        document_id = document_id or uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        payload = {k: v for k, v in data.items() if k not in ("id", "createdAt", PERMISSIONS_FIELD)}
        payload["createdAt"] = now
        payload["updatedAt"] = now
        if permissions is not None:
            payload[PERMISSIONS_FIELD] = permissions
        self._collection(collection_id)[document_id] = payload
        return {**payload, "id": document_id}

    async def list_documents(self, collection_id, filters=None, limit=None) -> List[Dict[str, Any]]:
        principal = self._enter("list_documents")
        documents = []
        for document_id, data in self._collection(collection_id).items():
            if all(data.get(field) == value for field, value in (filters or {}).items()):
                documents.append({**data, "id": document_id})
        if limit is not None:
            documents = documents[:limit]
        return [doc for doc in documents if is_allowed(doc, READ, principal)]

    async def get_document(self, collection_id, document_id) -> Dict[str, Any]:
        principal = self._enter("get_document")
        data = self._collection(collection_id).get(document_id)
        if data is None:
            raise NotFoundError(document_id)
        if not is_allowed(data, READ, principal):
            raise PermissionDeniedError(document_id)
        return {**data, "id": document_id}

    async def update_document(self, collection_id, document_id, data) -> Dict[str, Any]:
        principal = self._enter("update_document")
        existing = self._collection(collection_id).get(document_id)
        if existing is None:
            raise NotFoundError(document_id)
        if not is_allowed(existing, UPDATE, principal):
            raise PermissionDeniedError(document_id)
        existing.update(
            {k: v for k, v in data.items() if k not in ("id", "createdAt", PERMISSIONS_FIELD)}
        )
        existing["updatedAt"] = datetime.now(timezone.utc)
        return {**existing, "id": document_id}

    async def delete_document(self, collection_id, document_id) -> None:
        principal = self._enter("delete_document")
        existing = self._collection(collection_id).get(document_id)
        if existing is None:
            raise NotFoundError(document_id)
        if not is_allowed(existing, DELETE, principal):
            raise PermissionDeniedError(document_id)
        del self._collection(collection_id)[document_id]


class FakeIdentityProvider:
    """Accounts and sessions held in memory, keyed by email and id token."""

    def __init__(self):
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, str] = {}
        self.revoked: List[str] = []
        self.fail_delete_session: Optional[Exception] = None

    def add_account(self, email: str, password: str, uid: Optional[str] = None, name=None):
        uid = uid or f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = {"password": password, "user": AuthUser(uid=uid, email=email, name=name)}
        return self.accounts[email]["user"]

    def session_for(self, email: str) -> Session:
        user = self.accounts[email]["user"]
        token = f"token-{uuid.uuid4().hex}"
        self.sessions[token] = email
        return Session(uid=user.uid, id_token=token, refresh_token="refresh")

    async def create_account(self, email, password, name=None) -> AuthUser:
        if email in self.accounts:
            raise AuthError("Email exists", code="EMAIL_EXISTS")
        return self.add_account(email, password, name=name)

    async def create_email_password_session(self, email, password) -> Session:
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthError("Invalid login credentials", code="INVALID_LOGIN_CREDENTIALS")
        return self.session_for(email)

    async def create_oauth2_session(self, provider, success_url, failure_url):
        raise AuthError(f"Unsupported OAuth provider '{provider}'.", code="INVALID_PROVIDER")

    async def delete_session(self, session) -> None:
        if self.fail_delete_session is not None:
            raise self.fail_delete_session
        self.sessions.pop(session.id_token, None)
        self.revoked.append(session.uid)

    async def get_account(self, session) -> AuthUser:
        if session is None or session.id_token not in self.sessions:
            raise NotAuthenticatedError("No active session.")
        return self.accounts[self.sessions[session.id_token]]["user"]

    async def create_password_recovery(self, email, url) -> None:
        return None

    async def update_password(self, session, password) -> AuthUser:
        email = self.sessions[session.id_token]
        self.accounts[email]["password"] = password
        return self.accounts[email]["user"]

    async def update_name(self, session, name) -> AuthUser:
        email = self.sessions[session.id_token]
        account = self.accounts[email]
        account["user"] = account["user"].model_copy(update={"name": name})
        return account["user"]


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(USER_ID)


@pytest.fixture
def locks() -> UserLocks:
    return UserLocks()


@pytest.fixture
def database(store, locks) -> DatabaseService:
    return DatabaseService(store, locks=locks)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    provider = FakeIdentityProvider()
    provider.add_account("ada@example.com", "correct-horse", uid=USER_ID, name="Ada")
    return provider


@pytest.fixture
def auth_context(identity, store, locks) -> AuthContext:
    return AuthContext(
        identity,
        lambda uid: DatabaseService(store.for_principal(uid), locks=locks),
    )


@pytest.fixture
def profile_data() -> dict:
    return {
        "user_id": USER_ID,
        "age": 30,
        "sex": "female",
        "weight_pounds": 140,
        "height_inches": 65,
        "wakeup_time": "06:30",
        "bed_time": "22:30",
        "restrictions": ["Vegetarian"],
        "preferences": ["High protein"],
        "goals": ["Build muscle"],
        "activities": ["Weightlifting"],
        "supplements": ["Creatine"],
    }
