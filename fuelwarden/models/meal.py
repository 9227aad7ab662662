import datetime
import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fuelwarden.models.profile import reject_null


class MealType(str, enum.Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class FoodItem(BaseModel):
    name: str = Field(min_length=1)
    calories: NonNegativeFloat
    protein: NonNegativeFloat
    carbs: NonNegativeFloat
    fat: NonNegativeFloat
    quantity: NonNegativeFloat
    unit: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NutrientTotals(BaseModel):
    total_calories: Optional[NonNegativeFloat] = None
    total_protein: Optional[NonNegativeFloat] = None
    total_carbs: Optional[NonNegativeFloat] = None
    total_fat: Optional[NonNegativeFloat] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def _fill_missing_totals(self, foods: List[FoodItem]):
        """Totals that were not supplied are summed from the foods."""
        for total_field, food_field in (
            ("total_calories", "calories"),
            ("total_protein", "protein"),
            ("total_carbs", "carbs"),
            ("total_fat", "fat"),
        ):
            if getattr(self, total_field) is None:
                setattr(
                    self,
                    total_field,
                    round(sum(getattr(food, food_field) for food in foods), 2),
                )


class MealLogBase(NutrientTotals):
    date: datetime.date
    meal_type: MealType
    foods: List[FoodItem] = Field(default_factory=list)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def compute_totals(self):
        self._fill_missing_totals(self.foods)
        return self


class MealLogCreate(MealLogBase):
    user_id: str = Field(min_length=1)


class MealLogUpdate(NutrientTotals):
    date: Optional[datetime.date] = None
    meal_type: Optional[MealType] = None
    foods: Optional[List[FoodItem]] = None
    notes: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    @field_validator(
        "date",
        "meal_type",
        "foods",
        "total_calories",
        "total_protein",
        "total_carbs",
        "total_fat",
    )
    @classmethod
    def required_fields_are_not_null(cls, value):
        return reject_null(value)

    @model_validator(mode="after")
    def compute_totals(self):
        if self.foods is not None:
            self._fill_missing_totals(self.foods)
        return self


class MealLog(BaseModel):
    """Represents a meal log document as stored in Firestore."""

    id: str
    user_id: str
    date: datetime.date
    meal_type: MealType
    foods: List[FoodItem] = Field(default_factory=list)
    total_calories: float = 0
    total_protein: float = 0
    total_carbs: float = 0
    total_fat: float = 0
    notes: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlannedMeal(BaseModel):
    meal_type: MealType
    foods: List[FoodItem] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MealPlanBase(NutrientTotals):
    date: datetime.date
    meals: List[PlannedMeal] = Field(default_factory=list)

    @model_validator(mode="after")
    def compute_totals(self):
        self._fill_missing_totals([food for meal in self.meals for food in meal.foods])
        return self


class MealPlanCreate(MealPlanBase):
    user_id: str = Field(min_length=1)


class MealPlanUpdate(NutrientTotals):
    date: Optional[datetime.date] = None
    meals: Optional[List[PlannedMeal]] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    @field_validator(
        "date", "meals", "total_calories", "total_protein", "total_carbs", "total_fat"
    )
    @classmethod
    def required_fields_are_not_null(cls, value):
        return reject_null(value)

    @model_validator(mode="after")
    def compute_totals(self):
        if self.meals is not None:
            self._fill_missing_totals([food for meal in self.meals for food in meal.foods])
        return self


class MealPlan(BaseModel):
    """Represents a meal plan document as stored in Firestore."""

    id: str
    user_id: str
    date: datetime.date
    meals: List[PlannedMeal] = Field(default_factory=list)
    total_calories: float = 0
    total_protein: float = 0
    total_carbs: float = 0
    total_fat: float = 0
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
