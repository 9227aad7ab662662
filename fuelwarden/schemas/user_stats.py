from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserStats(BaseModel):
    """
    Counts of everything stored for one user, plus whether their profile exists.
    """

    total_meal_logs: int = 0
    total_meal_plans: int = 0
    total_activities: int = 0
    profile_complete: bool = False

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
