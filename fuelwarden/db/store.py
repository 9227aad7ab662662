"""
Document store adapter over Cloud Firestore.

Firestore's Admin SDK has no per-document ACLs, so each document carries a
``permissions`` map of ``{"read": [...], "update": [...], "delete": [...]}``
user ids. The store is bound to a principal (the signed-in user) and enforces
that map for every read, update and delete it performs on the principal's
behalf. Documents without a permissions map are treated as collection-level
data and are accessible to every principal.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as google_auth_exceptions
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from fuelwarden.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    RemoteError,
)

logger = logging.getLogger(__name__)

PERMISSIONS_FIELD = "permissions"
READ = "read"
UPDATE = "update"
DELETE = "delete"

# Fields owned by the store; callers cannot overwrite them through update.
_RESERVED_FIELDS = ("id", "createdAt", PERMISSIONS_FIELD)


def owner_permissions(user_id: str) -> Dict[str, List[str]]:
    """Read, update and delete restricted to a single user."""
    return {READ: [user_id], UPDATE: [user_id], DELETE: [user_id]}


def is_allowed(data: Mapping[str, Any], action: str, principal: str) -> bool:
    permissions = data.get(PERMISSIONS_FIELD)
    if permissions is None:
        return True
    return principal in permissions.get(action, [])


def _to_document(snapshot) -> Dict[str, Any]:
    document = snapshot.to_dict() or {}
    document["id"] = snapshot.id
    return document


@contextmanager
def _firestore_errors(document_id: Optional[str] = None):
    """Translates Google API failures into the application error taxonomy."""
    try:
        yield
    except google_exceptions.PermissionDenied as e:
        raise PermissionDeniedError(document_id, str(e)) from e
    except google_exceptions.NotFound as e:
        raise NotFoundError(document_id, str(e)) from e
    except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
        raise RemoteError(str(e)) from e
    except (google_auth_exceptions.TransportError, google_auth_exceptions.RefreshError) as e:
        raise RemoteError(f"Could not reach Firestore: {e}") from e
    except asyncio.TimeoutError as e:
        raise RemoteError("Firestore request timed out.") from e


class FirestoreDocumentStore:
    """Create, list, update and delete documents on behalf of one principal."""

    def __init__(self, client: AsyncClient, principal: Optional[str] = None):
        self._client = client
        self._principal = principal

    @property
    def principal(self) -> Optional[str]:
        return self._principal

    def for_principal(self, principal: str) -> "FirestoreDocumentStore":
        return FirestoreDocumentStore(self._client, principal)

    def _require_principal(self) -> str:
        if not self._principal:
            raise NotAuthenticatedError("The document store has no signed-in principal.")
        return self._principal

    async def create_document(
        self,
        collection_id: str,
        data: Mapping[str, Any],
        document_id: Optional[str] = None,
        permissions: Optional[Dict[str, List[str]]] = None,
    ) -> Dict[str, Any]:
        self._require_principal()
        collection = self._client.collection(collection_id)
        doc_ref = collection.document(document_id) if document_id else collection.document()

        now = datetime.now(timezone.utc)
        payload = {k: v for k, v in data.items() if k not in _RESERVED_FIELDS}
        payload["createdAt"] = now
        payload["updatedAt"] = now
        if permissions is not None:
            payload[PERMISSIONS_FIELD] = permissions

        with _firestore_errors(doc_ref.id):
            await doc_ref.create(payload)
        logger.debug(f"Created document '{doc_ref.id}' in '{collection_id}'.")
        return {**payload, "id": doc_ref.id}

    async def list_documents(
        self,
        collection_id: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Equality-filtered listing. Documents the principal cannot read are omitted."""
        principal = self._require_principal()
        query = self._client.collection(collection_id)
        for field, value in (filters or {}).items():
            query = query.where(filter=FieldFilter(field, "==", value))
        if limit is not None:
            query = query.limit(limit)

        with _firestore_errors():
            snapshots = await query.get()

        documents = [_to_document(snapshot) for snapshot in snapshots]
        return [doc for doc in documents if is_allowed(doc, READ, principal)]

    async def _checked_snapshot(self, doc_ref, action: str):
        """Fetches a document, refusing when it is missing or the principal may not ``action`` it."""
        principal = self._require_principal()
        snapshot = await doc_ref.get()
        if not snapshot.exists:
            raise NotFoundError(doc_ref.id)
        if not is_allowed(snapshot.to_dict() or {}, action, principal):
            raise PermissionDeniedError(doc_ref.id)
        return snapshot

    async def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        doc_ref = self._client.collection(collection_id).document(document_id)
        with _firestore_errors(document_id):
            snapshot = await self._checked_snapshot(doc_ref, READ)
        return _to_document(snapshot)

    async def update_document(
        self, collection_id: str, document_id: str, data: Mapping[str, Any]
    ) -> Dict[str, Any]:
        doc_ref = self._client.collection(collection_id).document(document_id)

        with _firestore_errors(document_id):
            await self._checked_snapshot(doc_ref, UPDATE)
            payload = {k: v for k, v in data.items() if k not in _RESERVED_FIELDS}
            payload["updatedAt"] = datetime.now(timezone.utc)
            await doc_ref.update(payload)
            updated = await doc_ref.get()

        return _to_document(updated)

    async def delete_document(self, collection_id: str, document_id: str) -> None:
        doc_ref = self._client.collection(collection_id).document(document_id)

        with _firestore_errors(document_id):
            await self._checked_snapshot(doc_ref, DELETE)
            await doc_ref.delete()
        logger.debug(f"Deleted document '{document_id}' from '{collection_id}'.")
