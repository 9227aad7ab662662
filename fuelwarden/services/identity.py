"""
Firebase Authentication client.

Account management and token verification go through the Firebase Admin SDK.
Password sign-in, OAuth redirects and password recovery are not exposed by the
Admin SDK, so those go through the Identity Toolkit REST API.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from fuelwarden.core.exceptions import AuthError, NotAuthenticatedError, RemoteError
from fuelwarden.models.user import AuthUser, Session

logger = logging.getLogger(__name__)

OAUTH_PROVIDERS = {
    "google": "google.com",
    "github": "github.com",
    "discord": "oidc.discord",
}


class OAuthRedirect(BaseModel):
    """Where to send the browser to start an OAuth sign-in."""

    provider: str
    auth_uri: str
    session_id: Optional[str] = None
    success_url: str
    failure_url: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _to_auth_user(record) -> AuthUser:
    created_at = None
    metadata = getattr(record, "user_metadata", None)
    if metadata is not None and metadata.creation_timestamp:
        created_at = datetime.fromtimestamp(
            metadata.creation_timestamp / 1000, tz=timezone.utc
        )
    return AuthUser(
        uid=record.uid,
        email=record.email,
        name=record.display_name,
        created_at=created_at,
    )


def _firebase_error(e: firebase_exceptions.FirebaseError) -> AuthError:
    return AuthError(str(e), code=str(e.code or "UNKNOWN_ERROR"))


class FirebaseIdentityProvider:
    """Session and account operations against Firebase Authentication."""

    BASE_URL = "https://identitytoolkit.googleapis.com/v1"

    def __init__(
        self,
        api_key: str,
        firebase_auth=auth,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self._auth = firebase_auth
        self._timeout = timeout
        self._transport = transport

    async def _post(self, endpoint: str, payload: dict) -> dict:
        """Calls an Identity Toolkit endpoint and returns its JSON body."""
        url = f"{self.BASE_URL}/{endpoint}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            error = {}
            try:
                error = e.response.json().get("error", {})
            except ValueError:
                pass
            code = error.get("message", "UNKNOWN_ERROR")
            logger.warning(f"Identity Toolkit '{endpoint}' rejected the request: {code}")
            raise AuthError(code.replace("_", " ").capitalize(), code=code) from e
        except httpx.HTTPError as e:
            logger.error(f"Identity Toolkit '{endpoint}' request failed: {e}")
            raise AuthError(
                "The identity service could not be reached.", code="NETWORK_ERROR"
            ) from e

    async def create_account(
        self, email: str, password: str, name: Optional[str] = None
    ) -> AuthUser:
        try:
            record = await asyncio.to_thread(
                self._auth.create_user, email=email, password=password, display_name=name
            )
        except firebase_exceptions.FirebaseError as e:
            raise _firebase_error(e) from e
        except ValueError as e:
            raise AuthError(str(e), code="INVALID_ARGUMENT") from e
        logger.info(f"Created account '{record.uid}'.")
        return _to_auth_user(record)

    async def create_email_password_session(self, email: str, password: str) -> Session:
        body = await self._post(
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return Session(
            uid=body["localId"],
            id_token=body["idToken"],
            refresh_token=body.get("refreshToken"),
            expires_in=int(body["expiresIn"]) if body.get("expiresIn") else None,
        )

    async def create_oauth2_session(
        self, provider: str, success_url: str, failure_url: str
    ) -> OAuthRedirect:
        if provider not in OAUTH_PROVIDERS:
            raise AuthError(
                f"Unsupported OAuth provider '{provider}'.", code="INVALID_PROVIDER"
            )
        body = await self._post(
            "accounts:createAuthUri",
            {"providerId": OAUTH_PROVIDERS[provider], "continueUri": success_url},
        )
        return OAuthRedirect(
            provider=provider,
            auth_uri=body["authUri"],
            session_id=body.get("sessionId"),
            success_url=success_url,
            failure_url=failure_url,
        )

    async def delete_session(self, session: Session) -> None:
        """
        Revokes the session's refresh tokens. ID tokens issued before this call
        are refused from then on because verification checks for revocation.
        """
        try:
            await asyncio.to_thread(self._auth.revoke_refresh_tokens, session.uid)
        except firebase_exceptions.FirebaseError as e:
            raise _firebase_error(e) from e

    async def get_account(self, session: Optional[Session]) -> AuthUser:
        if session is None or not session.id_token:
            raise NotAuthenticatedError("No active session.")
        try:
            claims = await asyncio.to_thread(
                self._auth.verify_id_token, session.id_token, check_revoked=True
            )
        except (
            auth.InvalidIdTokenError,
            auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError,
            auth.UserDisabledError,
        ) as e:
            raise NotAuthenticatedError(f"Invalid or expired token: {e}") from e
        except ValueError as e:
            raise NotAuthenticatedError(f"Invalid token: {e}") from e
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"Token verification failed: {e}")
            raise RemoteError(f"Could not verify the session token: {e}") from e
        try:
            record = await asyncio.to_thread(self._auth.get_user, claims["uid"])
        except firebase_exceptions.FirebaseError as e:
            raise _firebase_error(e) from e
        return _to_auth_user(record)

    async def create_password_recovery(self, email: str, url: str) -> None:
        await self._post(
            "accounts:sendOobCode",
            {"requestType": "PASSWORD_RESET", "email": email, "continueUrl": url},
        )

    async def update_password(self, session: Session, password: str) -> AuthUser:
        return await self._update_user(session, password=password)

    async def update_name(self, session: Session, name: str) -> AuthUser:
        return await self._update_user(session, display_name=name)

    async def _update_user(self, session: Session, **fields) -> AuthUser:
        try:
            record = await asyncio.to_thread(self._auth.update_user, session.uid, **fields)
        except firebase_exceptions.FirebaseError as e:
            raise _firebase_error(e) from e
        except ValueError as e:
            raise AuthError(str(e), code="INVALID_ARGUMENT") from e
        return _to_auth_user(record)
