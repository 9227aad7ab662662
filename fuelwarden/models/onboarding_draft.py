import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fuelwarden.models.activity_schedule import ActivityScheduleItem
from fuelwarden.models.profile import Sex


class OnboardingDraft(BaseModel):
    """
    The accumulated answers of the onboarding wizard.

    Every field is optional here; each one is only range-checked when the step
    that owns it is validated.
    """

    age: Optional[int] = None
    sex: Optional[Sex] = None
    weight_pounds: Optional[float] = None
    height_inches: Optional[int] = None
    wakeup_time: Optional[str] = None
    bed_time: Optional[str] = None
    activities: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    restrictions: List[str] = Field(default_factory=list)
    preferences: List[str] = Field(default_factory=list)
    supplements: List[str] = Field(default_factory=list)
    weekly_schedule: List[ActivityScheduleItem] = Field(default_factory=list)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class WizardState(BaseModel):
    """
    Represents an onboarding wizard in progress. Stored in Redis between requests
    and also used for API responses.
    """

    current_step_index: int = 0
    draft: OnboardingDraft = Field(default_factory=OnboardingDraft)
    errors: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None
    submitting: bool = False
    completed: bool = False

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ProfileTab(str, enum.Enum):
    BASIC_INFO = "basic_info"
    SCHEDULE = "schedule"
    PREFERENCES = "preferences"


class ProfileEditorState(BaseModel):
    """The profile editor's tab and unsaved edits, kept in Redis between requests."""

    active_tab: ProfileTab = ProfileTab.BASIC_INFO
    draft: OnboardingDraft = Field(default_factory=OnboardingDraft)
    errors: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
