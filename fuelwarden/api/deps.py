import logging
from functools import lru_cache
from typing import Optional

import redis.asyncio as redis
from cachetools import TTLCache, cached
from cachetools.keys import hashkey
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from google.cloud.firestore_v1.async_client import AsyncClient

from fuelwarden.core.config import settings
from fuelwarden.db.firebase import get_firebase_auth, get_firestore_client
from fuelwarden.db.store import FirestoreDocumentStore
from fuelwarden.models.user import AuthUser, Session
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.database import DatabaseService, UserLocks
from fuelwarden.services.identity import FirebaseIdentityProvider

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

auth_cache = TTLCache(maxsize=1024, ttl=settings.AUTH_CACHE_TTL_SECONDS)

# Shared so that concurrent upserts for one user serialize across requests.
upsert_locks = UserLocks()


@lru_cache()
def get_auth_dependency() -> auth:
    """
    Cached dependency to get the Firebase auth client.
    This avoids re-initializing the auth client on every request.
    """
    return get_firebase_auth()


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Shared Redis connection pool for onboarding wizard state."""
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


@lru_cache()
def get_identity_provider() -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider(
        api_key=settings.FIREBASE_WEB_API_KEY,
        firebase_auth=get_auth_dependency(),
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )


@cached(cache=auth_cache, key=lambda token, firebase_auth: hashkey(token))
def verify_token_and_get_user_data(token: str, firebase_auth: auth) -> dict:
    """
    Verifies the Firebase ID token and returns the decoded claims.
    Results of this function are cached in the TTL cache.
    """
    try:
        logger.debug("Cache miss. Verifying token with Firebase.")
        return firebase_auth.verify_id_token(token, check_revoked=True)
    except (
        auth.InvalidIdTokenError,
        auth.ExpiredIdTokenError,
        auth.RevokedIdTokenError,
        auth.UserDisabledError,
    ) as e:
        logger.warning(f"Invalid authentication attempt: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {e}",
        )
    except ValueError as e:
        logger.warning(f"Malformed authentication token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed authentication token.",
        )
    except firebase_exceptions.FirebaseError as e:
        logger.error(f"Token verification failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The identity service could not verify the token.",
        )


def forget_token(token: str) -> None:
    """Drops a token's cached verification so the next request re-checks revocation."""
    auth_cache.pop(hashkey(token), None)


async def get_current_user(
    cred: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    firebase_auth: auth = Depends(get_auth_dependency),
) -> AuthUser:
    """
    Validates a Firebase ID token using a local TTL cache and returns the
    corresponding User model.
    """
    if not cred:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials were not provided.",
        )

    token = cred.credentials
    decoded_token = verify_token_and_get_user_data(token, firebase_auth)
    return AuthUser(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        name=decoded_token.get("name"),
    )


def get_document_store(
    db: AsyncClient = Depends(get_firestore_client),
) -> FirestoreDocumentStore:
    """An unbound document store; bind it to a user before reading or writing."""
    return FirestoreDocumentStore(db)


def get_database_service(
    current_user: AuthUser = Depends(get_current_user),
    store: FirestoreDocumentStore = Depends(get_document_store),
) -> DatabaseService:
    """The data access layer acting on behalf of the authenticated user."""
    return DatabaseService(store.for_principal(current_user.uid), locks=upsert_locks)


def get_new_auth_context(
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
    store: FirestoreDocumentStore = Depends(get_document_store),
) -> AuthContext:
    """A fresh, uninitialized context for sign-in and sign-up requests."""
    return AuthContext(
        identity,
        lambda uid: DatabaseService(store.for_principal(uid), locks=upsert_locks),
    )


async def get_auth_context(
    cred: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer_scheme),
    context: AuthContext = Depends(get_new_auth_context),
) -> AuthContext:
    """
    A context restored from the request's bearer token. Requests without a
    usable token get an unauthenticated context rather than an error.
    """
    session = Session(uid="", id_token=cred.credentials) if cred else None
    await context.initialize(session)
    return context
