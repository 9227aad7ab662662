from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from fuelwarden.models.onboarding_draft import ProfileEditorState, ProfileTab
from fuelwarden.models.profile import UserProfile


class TabRequest(BaseModel):
    tab: ProfileTab


class ProfileEditorResponse(BaseModel):
    state: ProfileEditorState
    profile: Optional[UserProfile] = None
    has_completed_onboarding: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
