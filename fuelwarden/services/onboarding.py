"""
Onboarding wizard.

A fixed sequence of steps, each owning a disjoint set of draft fields. Moving
forward validates only the current step's fields; submitting writes the
profile (and the weekly schedule, when it has any activities) and only then
marks the wizard complete.
"""

import enum
import logging
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from fuelwarden.core.exceptions import FuelWardenError, NotAuthenticatedError, ValidationError
from fuelwarden.models.activity_schedule import ActivityScheduleItem
from fuelwarden.models.onboarding_draft import OnboardingDraft, WizardState
from fuelwarden.models.profile import (
    Age,
    HeightInches,
    Sex,
    TimeFieldsMixin,
    TimeOfDayText,
    UserProfile,
    WeightPounds,
)
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.database import validate_payload

logger = logging.getLogger(__name__)

RESTRICTION_OPTIONS = [
    "Gluten-free", "Dairy-free", "Vegetarian", "Vegan", "Nut-free",
    "Shellfish-free", "Soy-free", "Egg-free", "Low-carb", "Keto", "Paleo",
]

PREFERENCE_OPTIONS = [
    "High protein", "Low fat", "High fiber", "Organic", "Local produce",
    "Meal prep friendly", "Quick meals", "Budget conscious", "Gourmet", "Simple recipes",
]

GOAL_OPTIONS = [
    "Build muscle", "Lose weight", "Maintain weight", "Improve performance",
    "Increase energy", "Better recovery", "General health", "Athletic performance",
]

ACTIVITY_OPTIONS = [
    "Weightlifting", "Running", "Cycling", "Swimming", "Yoga", "CrossFit",
    "Team sports", "Hiking", "Martial arts", "Dancing", "Walking", "Other",
]

SUPPLEMENT_OPTIONS = [
    "Protein powder", "Creatine", "BCAAs", "Multivitamin", "Omega-3",
    "Vitamin D", "Pre-workout", "Post-workout", "None",
]

TAG_FIELDS = ("activities", "goals", "restrictions", "preferences", "supplements")


class OnboardingStep(str, enum.Enum):
    BASIC_INFO = "basic_info"
    SCHEDULE = "schedule"
    ACTIVITIES = "activities"
    GOALS = "goals"
    DIETARY_RESTRICTIONS = "dietary_restrictions"
    FOOD_PREFERENCES = "food_preferences"
    WEEKLY_SCHEDULE = "weekly_schedule"


def _at_least_one(values: List[str], what: str) -> List[str]:
    if not [value for value in values if value.strip()]:
        raise PydanticCustomError("too_short", f"Select at least one {what}")
    return values


class BasicInfoStep(BaseModel):
    age: Age
    sex: Sex
    weight_pounds: WeightPounds
    height_inches: HeightInches


class ScheduleStep(TimeFieldsMixin):
    wakeup_time: Optional[TimeOfDayText] = None
    bed_time: Optional[TimeOfDayText] = None


class ActivitiesStep(BaseModel):
    activities: List[str]

    @field_validator("activities")
    @classmethod
    def require_activity(cls, value):
        return _at_least_one(value, "activity")


class GoalsStep(BaseModel):
    goals: List[str]

    @field_validator("goals")
    @classmethod
    def require_goal(cls, value):
        return _at_least_one(value, "goal")


class DietaryRestrictionsStep(BaseModel):
    restrictions: List[str] = Field(default_factory=list)


class FoodPreferencesStep(BaseModel):
    preferences: List[str] = Field(default_factory=list)
    supplements: List[str] = Field(default_factory=list)


class WeeklyScheduleStep(BaseModel):
    weekly_schedule: List[ActivityScheduleItem] = Field(default_factory=list)


STEPS: Tuple[Tuple[OnboardingStep, Type[BaseModel]], ...] = (
    (OnboardingStep.BASIC_INFO, BasicInfoStep),
    (OnboardingStep.SCHEDULE, ScheduleStep),
    (OnboardingStep.ACTIVITIES, ActivitiesStep),
    (OnboardingStep.GOALS, GoalsStep),
    (OnboardingStep.DIETARY_RESTRICTIONS, DietaryRestrictionsStep),
    (OnboardingStep.FOOD_PREFERENCES, FoodPreferencesStep),
    (OnboardingStep.WEEKLY_SCHEDULE, WeeklyScheduleStep),
)

STEP_FIELDS: Dict[OnboardingStep, Tuple[str, ...]] = {
    step: tuple(model.model_fields) for step, model in STEPS
}


class OnboardingWizard:
    """
    Drives one user through onboarding.

    The wizard only holds ``WizardState``; callers persist that state between
    requests and rebuild the wizard around it.
    """

    def __init__(self, auth: AuthContext, state: Optional[WizardState] = None):
        self.auth = auth
        self.state = state or WizardState()

    @property
    def current_step(self) -> OnboardingStep:
        return STEPS[self.state.current_step_index][0]

    @property
    def is_first_step(self) -> bool:
        return self.state.current_step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self.state.current_step_index == len(STEPS) - 1

    def update(self, **fields) -> WizardState:
        """Merges answers into the draft. Range checks wait for the owning step."""
        merged = {**self.state.draft.model_dump(), **fields}
        self.state.draft = validate_payload(OnboardingDraft, merged)
        for name in fields:
            self.state.errors.pop(name, None)
        return self.state

    def toggle(self, field: str, value: str) -> WizardState:
        """Adds ``value`` to a tag field, or removes it if already selected."""
        if field not in TAG_FIELDS:
            raise ValidationError(field, f"'{field}' is not a selectable list.")
        values = list(getattr(self.state.draft, field))
        if value in values:
            values.remove(value)
        else:
            values.append(value)
        return self.update(**{field: values})

    def _step_errors(self, step: OnboardingStep) -> Dict[str, str]:
        model = dict(STEPS)[step]
        data = self.state.draft.model_dump(include=set(STEP_FIELDS[step]))
        try:
            model.model_validate(data)
        except PydanticValidationError as e:
            errors: Dict[str, str] = {}
            for error in e.errors():
                field = str(error["loc"][0]) if error["loc"] else step.value
                errors.setdefault(field, error["msg"])
            return errors
        return {}

    def next(self) -> bool:
        """Advances one step if the current step's fields are valid."""
        if self.is_last_step:
            return False
        step = self.current_step
        errors = self._step_errors(step)
        for name in STEP_FIELDS[step]:
            self.state.errors.pop(name, None)
        if errors:
            self.state.errors.update(errors)
            return False
        self.state.current_step_index += 1
        return True

    def previous(self) -> bool:
        if self.is_first_step:
            return False
        self.state.current_step_index -= 1
        return True

    def dismiss_error(self):
        self.state.error = None

    async def submit(self) -> Optional[UserProfile]:
        """
        Writes the profile, then the weekly schedule if it has any activities.

        Returns the saved profile, or None when a field failed validation (the
        errors are attached to ``state.errors``). Any other failure is recorded
        in ``state.error`` and re-raised. Either way the wizard stays on the
        last step and is not marked complete.
        """
        if not self.is_last_step:
            raise ValidationError("step", "Onboarding can only be submitted from the final step.")
        if self.state.submitting:
            logger.warning("Ignoring onboarding submission while one is in flight.")
            return None

        self.state.error = None
        user = self.auth.user
        if user is None:
            error = NotAuthenticatedError("Sign in to complete onboarding.")
            self.state.error = error.message
            raise error

        errors: Dict[str, str] = {}
        for step, _ in STEPS:
            errors.update(self._step_errors(step))
        if errors:
            self.state.errors = errors
            return None

        draft = self.state.draft
        profile_data = draft.model_dump(exclude={"weekly_schedule"})
        profile_data["user_id"] = user.uid
        has_schedule = any(not item.is_blank for item in draft.weekly_schedule)

        self.state.submitting = True
        try:
            with self.auth.suppress_onboarding_probe():
                database = self.auth.database
                profile = await database.upsert_user_profile(profile_data)
                if has_schedule:
                    await database.upsert_activity_schedule(
                        {"user_id": user.uid, "schedule": draft.weekly_schedule}
                    )
        except ValidationError as e:
            self.state.errors[e.field] = e.message
            return None
        except FuelWardenError as e:
            logger.error(f"Onboarding submission failed for '{user.uid}': {e.message}")
            self.state.error = e.message
            raise
        finally:
            self.state.submitting = False

        self.state.completed = True
        logger.info(f"User '{user.uid}' completed onboarding.")
        await self.auth.check_onboarding_status()
        return profile
