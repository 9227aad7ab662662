import logging
from typing import Dict, Optional, Tuple

from fuelwarden.core.exceptions import FuelWardenError, NotFoundError, ValidationError
from fuelwarden.models.onboarding_draft import OnboardingDraft, ProfileEditorState, ProfileTab
from fuelwarden.models.profile import UserProfile
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.database import validate_payload

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "age",
    "sex",
    "weight_pounds",
    "height_inches",
    "wakeup_time",
    "bed_time",
    "restrictions",
    "preferences",
    "goals",
    "activities",
    "supplements",
)


TAB_FIELDS: Dict[ProfileTab, Tuple[str, ...]] = {
    ProfileTab.BASIC_INFO: ("age", "sex", "weight_pounds", "height_inches"),
    ProfileTab.SCHEDULE: ("wakeup_time", "bed_time"),
    ProfileTab.PREFERENCES: ("restrictions", "preferences", "goals", "activities", "supplements"),
}


class ProfileEditor:
    """
    Tabbed editor over the signed-in user's profile.

    Saving a tab writes only that tab's fields. If the user has no profile yet,
    the first save creates one from the whole draft instead.
    """

    def __init__(self, auth: AuthContext, state: Optional[ProfileEditorState] = None):
        state = state or ProfileEditorState()
        self.auth = auth
        self.profile: Optional[UserProfile] = None
        self.draft = state.draft
        self.active_tab = state.active_tab
        self.errors: Dict[str, str] = dict(state.errors)
        self.error: Optional[str] = state.error
        self.message: Optional[str] = state.message
        self.saving = False

    @property
    def state(self) -> ProfileEditorState:
        return ProfileEditorState(
            active_tab=self.active_tab,
            draft=self.draft,
            errors=self.errors,
            error=self.error,
            message=self.message,
        )

    async def load(self, refresh_draft: bool = True) -> Optional[UserProfile]:
        """
        Reads the stored profile. With ``refresh_draft`` the draft is replaced
        by the stored values; without it, unsaved edits are kept.
        """
        user_id = self.auth.user.uid if self.auth.user else ""
        self.profile = await self.auth.database.get_user_profile(user_id)
        if self.profile is not None and refresh_draft:
            data = self.profile.model_dump(include=set(PROFILE_FIELDS))
            data["supplements"] = data.get("supplements") or []
            self.draft = validate_payload(OnboardingDraft, data)
        return self.profile

    def select_tab(self, tab) -> ProfileTab:
        self.active_tab = ProfileTab(tab)
        return self.active_tab

    def update(self, **fields) -> OnboardingDraft:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationError(field, f"'{field}' is not a profile field.")
        self.draft = validate_payload(OnboardingDraft, {**self.draft.model_dump(), **fields})
        for name in fields:
            self.errors.pop(name, None)
        return self.draft

    async def save(self) -> Optional[UserProfile]:
        """
        Saves the active tab. Returns None and fills ``errors`` when a field is
        out of range; other failures set ``error`` and propagate.
        """
        user = self.auth.user
        database = self.auth.database
        self.errors, self.error, self.message = {}, None, None
        self.saving = True
        try:
            if self.profile is None:
                data = self.draft.model_dump(include=set(PROFILE_FIELDS))
                data["user_id"] = user.uid
                self.profile = await database.upsert_user_profile(data)
            else:
                updates = self.draft.model_dump(include=set(TAB_FIELDS[self.active_tab]))
                self.profile = await database.update_user_profile(self.profile.id, updates)
        except ValidationError as e:
            self.errors[e.field] = e.message
            return None
        except FuelWardenError as e:
            logger.error(f"Profile save failed for '{user.uid}': {e.message}")
            self.error = e.message
            raise
        finally:
            self.saving = False

        self.message = "Profile updated successfully!"
        await self.auth.check_onboarding_status()
        return self.profile

    async def delete(self) -> None:
        """Deletes the profile. The account itself is left in place."""
        if self.profile is None:
            raise NotFoundError(None, "There is no profile to delete.")
        user = self.auth.user
        await self.auth.database.delete_user_profile(self.profile.id, user.uid)
        logger.info(f"User '{user.uid}' deleted their profile.")
        self.profile = None
        self.draft = OnboardingDraft()
        await self.auth.check_onboarding_status()
