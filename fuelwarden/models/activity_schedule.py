import datetime
import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DayOfWeek(str, enum.Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class TimeOfDay(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Intensity(str, enum.Enum):
    LIGHT = "light"
    MODERATE = "moderate"
    INTENSE = "intense"


class ActivityScheduleItem(BaseModel):
    """A single recurring activity slot in a user's week."""

    day_of_week: DayOfWeek
    time_of_day: TimeOfDay
    activity: str = ""
    intensity: Intensity = Intensity.MODERATE
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=300)
    notes: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def is_blank(self) -> bool:
        return not self.activity.strip()


class ActivityScheduleBase(BaseModel):
    schedule: List[ActivityScheduleItem] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActivityScheduleCreate(ActivityScheduleBase):
    user_id: str = Field(min_length=1)


class ActivityScheduleUpdate(BaseModel):
    schedule: Optional[List[ActivityScheduleItem]] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    @field_validator("schedule")
    @classmethod
    def schedule_is_not_null(cls, value):
        if value is None:
            raise ValueError("This field cannot be null")
        return value


class ActivitySchedule(BaseModel):
    """Represents an activity schedule document as stored in Firestore."""

    id: str
    user_id: str
    schedule: List[ActivityScheduleItem] = Field(default_factory=list)
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
