import datetime
import enum
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel


class Sex(str, enum.Enum):
    """Sex as the application presents and accepts it."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class StoredSex(str, enum.Enum):
    """
    Sex as stored in the user_profiles collection.

    The stored value space is a strict superset of ``Sex``: NON_BINARY is never
    written by this application but may be present on documents written by
    other clients. It reads back as ``Sex.OTHER``.
    """

    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    NON_BINARY = "Non-Binary"


_SEX_TO_STORED = {
    Sex.MALE: StoredSex.MALE,
    Sex.FEMALE: StoredSex.FEMALE,
    Sex.OTHER: StoredSex.OTHER,
}

_STORED_TO_SEX = {
    StoredSex.MALE: Sex.MALE,
    StoredSex.FEMALE: Sex.FEMALE,
    StoredSex.OTHER: Sex.OTHER,
    StoredSex.NON_BINARY: Sex.OTHER,
}


def to_stored_sex(sex: Sex) -> StoredSex:
    return _SEX_TO_STORED[Sex(sex)]


def from_stored_sex(value: str) -> Sex:
    """Maps a stored value back to ``Sex``. Lowercase legacy values pass through."""
    if value in Sex._value2member_map_:
        return Sex(value)
    return _STORED_TO_SEX[StoredSex(value)]


def reject_null(value):
    """For partial updates: an omitted field is left alone, an explicit null is refused."""
    if value is None:
        raise ValueError("This field cannot be null")
    return value


def _unique_tags(tags: List[str]) -> List[str]:
    """Drops duplicate tags, keeping the first occurrence's position."""
    return list(dict.fromkeys(tags))


Age = Annotated[int, Field(ge=13, le=120)]
WeightPounds = Annotated[float, Field(ge=50, le=500)]
HeightInches = Annotated[int, Field(ge=48, le=96)]
TimeOfDayText = Annotated[str, StringConstraints(pattern=r"^\d{2}:\d{2}$")]
TagList = Annotated[List[str], AfterValidator(_unique_tags)]


class TimeFieldsMixin(BaseModel):
    @field_validator("wakeup_time", "bed_time", mode="before", check_fields=False)
    @classmethod
    def blank_time_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UserProfileBase(TimeFieldsMixin):
    """Profile fields shared by the create and read models."""

    age: Age
    weight_pounds: WeightPounds
    height_inches: HeightInches
    sex: Sex
    wakeup_time: Optional[TimeOfDayText] = None
    bed_time: Optional[TimeOfDayText] = None
    restrictions: TagList = Field(default_factory=list)
    preferences: TagList = Field(default_factory=list)
    goals: TagList = Field(default_factory=list)
    activities: TagList = Field(default_factory=list)
    supplements: Optional[TagList] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UserProfileCreate(UserProfileBase):
    user_id: str = Field(min_length=1)


class UserProfileUpdate(TimeFieldsMixin):
    """Partial profile update. Only the fields that are set are validated and written."""

    age: Optional[Age] = None
    weight_pounds: Optional[WeightPounds] = None
    height_inches: Optional[HeightInches] = None
    sex: Optional[Sex] = None
    wakeup_time: Optional[TimeOfDayText] = None
    bed_time: Optional[TimeOfDayText] = None
    restrictions: Optional[TagList] = None
    preferences: Optional[TagList] = None
    goals: Optional[TagList] = None
    activities: Optional[TagList] = None
    supplements: Optional[TagList] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    @field_validator(
        "age",
        "weight_pounds",
        "height_inches",
        "sex",
        "restrictions",
        "preferences",
        "goals",
        "activities",
    )
    @classmethod
    def required_fields_are_not_null(cls, value):
        return reject_null(value)


class UserProfile(UserProfileBase):
    """Represents a user profile document as read back from Firestore."""

    id: str
    user_id: str
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
