"""
Cached identity for one client session.

``AuthContext`` is the single writer of the signed-in user, the current
session and the derived ``has_completed_onboarding`` flag. Consumers receive
it by injection and only read from it, apart from calling its transitions.
"""

import enum
import logging
from contextlib import contextmanager
from typing import Callable, Optional

from fuelwarden.core.exceptions import FuelWardenError, NotAuthenticatedError
from fuelwarden.models.user import AuthUser, Session
from fuelwarden.services.database import DatabaseService

logger = logging.getLogger(__name__)


class AuthStatus(str, enum.Enum):
    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class AuthContext:
    """
    Session state machine over ``initializing``, ``unauthenticated`` and
    ``authenticated``.

    Args:
        identity: the identity provider (see ``FirebaseIdentityProvider``).
        database_for: builds a ``DatabaseService`` scoped to a user id.
        session: a previously issued session to restore on ``initialize``.
    """

    def __init__(
        self,
        identity,
        database_for: Callable[[str], DatabaseService],
        session: Optional[Session] = None,
    ):
        self._identity = identity
        self._database_for = database_for
        self.status = AuthStatus.INITIALIZING
        self.session = session
        self.user: Optional[AuthUser] = None
        self.error: Optional[FuelWardenError] = None
        self.has_completed_onboarding = False
        self._probe_suppressions = 0

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED and self.user is not None

    @property
    def onboarding_probe_suppressed(self) -> bool:
        return self._probe_suppressions > 0

    @property
    def database(self) -> DatabaseService:
        """The data access layer scoped to the signed-in user."""
        if self.user is None:
            raise NotAuthenticatedError("No signed-in user.")
        return self._database_for(self.user.uid)

    def _become_authenticated(self, session: Session, user: AuthUser):
        if session.uid != user.uid:
            session = session.model_copy(update={"uid": user.uid})
        self.session = session
        self.user = user
        self.status = AuthStatus.AUTHENTICATED

    def _become_unauthenticated(self):
        self.session = None
        self.user = None
        self.has_completed_onboarding = False
        self.status = AuthStatus.UNAUTHENTICATED

    async def initialize(self, session: Optional[Session] = None) -> AuthStatus:
        """Probes the provider for the current account and settles the state."""
        self.error = None
        self.status = AuthStatus.INITIALIZING
        session = session or self.session
        try:
            user = await self._identity.get_account(session)
        except FuelWardenError as e:
            logger.info(f"No usable session on initialization: {e.message}")
            self._become_unauthenticated()
            return self.status

        self._become_authenticated(session, user)
        await self.check_onboarding_status()
        return self.status

    async def check_onboarding_status(self) -> bool:
        """
        Re-derives ``has_completed_onboarding`` from whether a profile exists.

        Does nothing while an onboarding submission has the probe suppressed.
        """
        if self.user is None:
            return False
        if self.onboarding_probe_suppressed:
            logger.debug(f"Onboarding probe for '{self.user.uid}' suppressed.")
            return self.has_completed_onboarding

        try:
            profile = await self.database.get_user_profile(self.user.uid)
            self.has_completed_onboarding = profile is not None
        except FuelWardenError as e:
            logger.error(f"Error checking onboarding status for '{self.user.uid}': {e}")
            self.has_completed_onboarding = False
        return self.has_completed_onboarding

    @contextmanager
    def suppress_onboarding_probe(self):
        """Keeps ``check_onboarding_status`` from running inside the block."""
        self._probe_suppressions += 1
        try:
            yield self
        finally:
            self._probe_suppressions -= 1

    async def sign_in(self, email: str, password: str) -> AuthUser:
        self.error = None
        if self.session is not None:
            # A stale session is replaced, so failing to end it is not an error.
            try:
                await self._identity.delete_session(self.session)
            except FuelWardenError as e:
                logger.debug(f"Ignoring failure to end previous session: {e.message}")

        try:
            session = await self._identity.create_email_password_session(email, password)
            user = await self._identity.get_account(session)
        except FuelWardenError as e:
            logger.warning(f"Sign-in failed for '{email}': {e.message}")
            self.error = e
            raise

        self._become_authenticated(session, user)
        logger.info(f"User '{user.uid}' signed in.")
        await self.check_onboarding_status()
        return user

    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> AuthUser:
        """Creates the account and signs it in; new accounts have not onboarded."""
        self.error = None
        try:
            await self._identity.create_account(email, password, name)
            session = await self._identity.create_email_password_session(email, password)
            user = await self._identity.get_account(session)
        except FuelWardenError as e:
            logger.warning(f"Sign-up failed for '{email}': {e.message}")
            self.error = e
            raise

        self._become_authenticated(session, user)
        self.has_completed_onboarding = False
        logger.info(f"User '{user.uid}' signed up.")
        return user

    async def sign_out(self) -> None:
        """Always ends unauthenticated; a remote failure is only recorded."""
        self.error = None
        session = self.session
        try:
            if session is not None:
                await self._identity.delete_session(session)
        except FuelWardenError as e:
            logger.warning(f"Sign-out could not end the remote session: {e.message}")
            self.error = e
        finally:
            self._become_unauthenticated()

    def clear_error(self):
        self.error = None

    async def create_oauth_session(self, provider: str, success_url: str, failure_url: str):
        self.error = None
        try:
            return await self._identity.create_oauth2_session(provider, success_url, failure_url)
        except FuelWardenError as e:
            self.error = e
            raise

    async def create_password_recovery(self, email: str, url: str) -> None:
        self.error = None
        try:
            await self._identity.create_password_recovery(email, url)
        except FuelWardenError as e:
            self.error = e
            raise

    async def update_password(self, password: str) -> AuthUser:
        return await self._update_account(self._identity.update_password, password)

    async def update_name(self, name: str) -> AuthUser:
        return await self._update_account(self._identity.update_name, name)

    async def _update_account(self, operation, value) -> AuthUser:
        self.error = None
        if not self.is_authenticated:
            raise NotAuthenticatedError("Sign in before changing account details.")
        try:
            self.user = await operation(self.session, value)
        except FuelWardenError as e:
            self.error = e
            raise
        return self.user
