from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from fuelwarden.models.onboarding_draft import WizardState
from fuelwarden.models.profile import UserProfile


class ToggleRequest(BaseModel):
    """Adds the value to a selectable list, or removes it if already selected."""

    field: str
    value: str


class WizardResponse(BaseModel):
    step: str
    step_number: int
    total_steps: int
    state: WizardState
    has_completed_onboarding: bool = False
    profile: Optional[UserProfile] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OnboardingOptions(BaseModel):
    """The predefined choices offered by the selectable steps."""

    activities: List[str]
    goals: List[str]
    restrictions: List[str]
    preferences: List[str]
    supplements: List[str]
    step_fields: Dict[str, List[str]]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
