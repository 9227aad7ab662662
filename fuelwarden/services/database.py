"""
Data access layer.

``DatabaseService`` is the single point of translation between the domain
models and the document store. It validates every payload before any remote
call, transforms field shapes for storage (the profile ``sex`` enum, blank
activity schedule items) and reconciles singleton entities through upsert.
"""

import asyncio
import datetime
import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from fuelwarden.core.exceptions import (
    DuplicateError,
    FuelWardenError,
    NotAuthenticatedError,
    PermissionDeniedError,
    RemoteError,
    ValidationError,
)
from fuelwarden.db.store import owner_permissions
from fuelwarden.models.activity_schedule import (
    ActivitySchedule,
    ActivityScheduleCreate,
    ActivityScheduleUpdate,
)
from fuelwarden.models.meal import (
    MealLog,
    MealLogCreate,
    MealLogUpdate,
    MealPlan,
    MealPlanCreate,
    MealPlanUpdate,
)
from fuelwarden.models.profile import (
    UserProfile,
    UserProfileCreate,
    UserProfileUpdate,
    from_stored_sex,
    to_stored_sex,
)
from fuelwarden.schemas.user_stats import UserStats

logger = logging.getLogger(__name__)

USER_PROFILES_COLLECTION_ID = "user_profiles"
MEAL_LOGS_COLLECTION_ID = "meal_logs"
MEAL_PLANS_COLLECTION_ID = "meal_plans"
ACTIVITY_SCHEDULE_COLLECTION_ID = "activity_schedule"

Payload = Union[BaseModel, Mapping[str, Any]]


def _identity(data: Dict[str, Any]) -> Dict[str, Any]:
    return data


def _profile_to_store(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("sex") is not None:
        data["sex"] = to_stored_sex(data["sex"]).value
    return data


def _profile_from_store(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("sex") is not None:
        data["sex"] = from_stored_sex(data["sex"])
    return data


def _schedule_to_store(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("schedule") is not None:
        data["schedule"] = [
            item for item in data["schedule"] if (item.get("activity") or "").strip()
        ]
    return data


@dataclass(frozen=True)
class EntityFamily:
    """Describes how one kind of user-owned document is validated and stored."""

    label: str
    collection_id: str
    create_model: Type[BaseModel]
    update_model: Type[BaseModel]
    read_model: Type[BaseModel]
    singleton: bool = False
    to_store: Callable[[Dict[str, Any]], Dict[str, Any]] = _identity
    from_store: Callable[[Dict[str, Any]], Dict[str, Any]] = _identity


USER_PROFILES = EntityFamily(
    label="user profile",
    collection_id=USER_PROFILES_COLLECTION_ID,
    create_model=UserProfileCreate,
    update_model=UserProfileUpdate,
    read_model=UserProfile,
    singleton=True,
    to_store=_profile_to_store,
    from_store=_profile_from_store,
)

ACTIVITY_SCHEDULES = EntityFamily(
    label="activity schedule",
    collection_id=ACTIVITY_SCHEDULE_COLLECTION_ID,
    create_model=ActivityScheduleCreate,
    update_model=ActivityScheduleUpdate,
    read_model=ActivitySchedule,
    singleton=True,
    to_store=_schedule_to_store,
)

MEAL_LOGS = EntityFamily(
    label="meal log",
    collection_id=MEAL_LOGS_COLLECTION_ID,
    create_model=MealLogCreate,
    update_model=MealLogUpdate,
    read_model=MealLog,
)

MEAL_PLANS = EntityFamily(
    label="meal plan",
    collection_id=MEAL_PLANS_COLLECTION_ID,
    create_model=MealPlanCreate,
    update_model=MealPlanUpdate,
    read_model=MealPlan,
)

ENTITY_FAMILIES = (USER_PROFILES, MEAL_LOGS, MEAL_PLANS, ACTIVITY_SCHEDULES)


def _field_name(model_cls: Type[BaseModel], loc) -> str:
    """Maps a pydantic error location to the offending attribute name."""
    if not loc:
        return "__root__"
    head, rest = loc[0], loc[1:]
    for name, info in model_cls.model_fields.items():
        if head in (name, info.alias):
            head = name
            break
    return ".".join(str(part) for part in (head, *rest))


def validate_payload(model_cls: Type[BaseModel], data: Payload) -> BaseModel:
    """
    Validates ``data`` against ``model_cls``.

    Raises:
        ValidationError: naming the first offending field.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(_field_name(model_cls, first["loc"]), first["msg"]) from e


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise NotAuthenticatedError("A user id is required for this operation.")
    return user_id


def _normalize_date(value: Union[str, datetime.date]) -> str:
    if isinstance(value, datetime.date):
        return value.isoformat()
    try:
        return datetime.date.fromisoformat(value).isoformat()
    except (TypeError, ValueError) as e:
        raise ValidationError("date", f"Invalid calendar date '{value}'.") from e


@contextmanager
def _operation(action: str):
    """Re-raises store failures with a prefix naming the attempted operation."""
    try:
        yield
    except FuelWardenError as e:
        raise e.add_context(f"Failed to {action}")


class UserLocks:
    """In-process asyncio locks keyed by user id."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_user(self, user_id: str) -> asyncio.Lock:
        return self._locks[user_id]


class DatabaseService:
    """
    Typed access to the FuelWarden collections on behalf of one principal.

    Upserts are read-then-write and are not atomic against other processes.
    Within this process, concurrent upserts for the same user are serialized
    through ``locks``; share one ``UserLocks`` between services for that to hold.
    """

    def __init__(self, store, locks: Optional[UserLocks] = None):
        self._store = store
        self._locks = locks or UserLocks()

    # ===== GENERIC OPERATIONS =====

    def _to_store(self, family: EntityFamily, model: BaseModel, partial: bool = False):
        data = model.model_dump(mode="json", by_alias=True, exclude_unset=partial)
        return family.to_store(data)

    def _from_store(self, family: EntityFamily, document: Mapping[str, Any]):
        data = family.from_store(dict(document))
        try:
            return family.read_model.model_validate(data)
        except PydanticValidationError as e:
            raise RemoteError(
                f"Stored {family.label} '{document.get('id')}' is malformed: {e}"
            ) from e

    async def _create(self, family: EntityFamily, entity: Payload):
        model = validate_payload(family.create_model, entity)
        body = self._to_store(family, model)

        with _operation(f"create {family.label}"):
            if family.singleton:
                existing = await self._store.list_documents(
                    family.collection_id, {"userId": model.user_id}
                )
                if existing:
                    raise DuplicateError(model.user_id, family.label)
            document = await self._store.create_document(
                family.collection_id,
                body,
                permissions=owner_permissions(model.user_id),
            )

        logger.info(f"Created {family.label} '{document['id']}' for user '{model.user_id}'.")
        return self._from_store(family, document)

    async def _list(
        self,
        family: EntityFamily,
        user_id: str,
        date: Optional[Union[str, datetime.date]] = None,
    ) -> List[Any]:
        filters: Dict[str, Any] = {"userId": _require_user(user_id)}
        if date is not None:
            filters["date"] = _normalize_date(date)

        with _operation(f"get {family.label}s"):
            documents = await self._store.list_documents(family.collection_id, filters)
        return [self._from_store(family, document) for document in documents]

    async def _get_single(self, family: EntityFamily, user_id: str):
        _require_user(user_id)
        with _operation(f"get {family.label}"):
            documents = await self._store.list_documents(
                family.collection_id, {"userId": user_id}
            )

        if not documents:
            return None
        if len(documents) > 1:
            logger.warning(
                f"Data integrity anomaly: {len(documents)} {family.label} documents "
                f"for user '{user_id}'. Using '{documents[0]['id']}'."
            )
        return self._from_store(family, documents[0])

    async def _update(self, family: EntityFamily, document_id: str, updates: Payload):
        model = validate_payload(family.update_model, updates)
        body = self._to_store(family, model, partial=True)
        if not body:
            raise ValidationError("updates", "At least one field must be provided.")

        with _operation(f"update {family.label}"):
            document = await self._store.update_document(
                family.collection_id, document_id, body
            )

        logger.info(f"Updated {family.label} '{document_id}'.")
        return self._from_store(family, document)

    async def _delete(self, family: EntityFamily, document_id: str, user_id: str) -> None:
        _require_user(user_id)
        with _operation(f"delete {family.label}"):
            if self._store.principal != user_id:
                raise PermissionDeniedError(
                    document_id, f"User '{user_id}' is not the signed-in user."
                )
            await self._store.delete_document(family.collection_id, document_id)
        logger.info(f"Deleted {family.label} '{document_id}' for user '{user_id}'.")

    async def _upsert(self, family: EntityFamily, entity: Payload):
        model = validate_payload(family.create_model, entity)
        async with self._locks.for_user(model.user_id):
            existing = await self._get_single(family, model.user_id)
            if existing is None:
                return await self._create(family, model)
            return await self._update(
                family, existing.id, model.model_dump(exclude={"user_id"})
            )

    # ===== USER PROFILE METHODS =====

    async def create_user_profile(self, profile: Payload) -> UserProfile:
        return await self._create(USER_PROFILES, profile)

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        return await self._get_single(USER_PROFILES, user_id)

    async def update_user_profile(self, profile_id: str, updates: Payload) -> UserProfile:
        return await self._update(USER_PROFILES, profile_id, updates)

    async def delete_user_profile(self, profile_id: str, user_id: str) -> None:
        await self._delete(USER_PROFILES, profile_id, user_id)

    async def upsert_user_profile(self, profile: Payload) -> UserProfile:
        return await self._upsert(USER_PROFILES, profile)

    # ===== ACTIVITY SCHEDULE METHODS =====

    async def create_activity_schedule(self, schedule: Payload) -> ActivitySchedule:
        return await self._create(ACTIVITY_SCHEDULES, schedule)

    async def get_activity_schedule(self, user_id: str) -> Optional[ActivitySchedule]:
        return await self._get_single(ACTIVITY_SCHEDULES, user_id)

    async def get_user_activity_schedules(self, user_id: str) -> List[ActivitySchedule]:
        return await self._list(ACTIVITY_SCHEDULES, user_id)

    async def update_activity_schedule(
        self, schedule_id: str, updates: Payload
    ) -> ActivitySchedule:
        return await self._update(ACTIVITY_SCHEDULES, schedule_id, updates)

    async def delete_activity_schedule(self, schedule_id: str, user_id: str) -> None:
        await self._delete(ACTIVITY_SCHEDULES, schedule_id, user_id)

    async def upsert_activity_schedule(self, schedule: Payload) -> ActivitySchedule:
        return await self._upsert(ACTIVITY_SCHEDULES, schedule)

    # ===== MEAL LOG METHODS =====

    async def create_meal_log(self, meal_log: Payload) -> MealLog:
        return await self._create(MEAL_LOGS, meal_log)

    async def get_user_meal_logs(
        self, user_id: str, date: Optional[Union[str, datetime.date]] = None
    ) -> List[MealLog]:
        return await self._list(MEAL_LOGS, user_id, date)

    async def update_meal_log(self, meal_log_id: str, updates: Payload) -> MealLog:
        return await self._update(MEAL_LOGS, meal_log_id, updates)

    async def delete_meal_log(self, meal_log_id: str, user_id: str) -> None:
        await self._delete(MEAL_LOGS, meal_log_id, user_id)

    # ===== MEAL PLAN METHODS =====

    async def create_meal_plan(self, meal_plan: Payload) -> MealPlan:
        return await self._create(MEAL_PLANS, meal_plan)

    async def get_user_meal_plans(
        self, user_id: str, date: Optional[Union[str, datetime.date]] = None
    ) -> List[MealPlan]:
        return await self._list(MEAL_PLANS, user_id, date)

    async def update_meal_plan(self, meal_plan_id: str, updates: Payload) -> MealPlan:
        return await self._update(MEAL_PLANS, meal_plan_id, updates)

    async def delete_meal_plan(self, meal_plan_id: str, user_id: str) -> None:
        await self._delete(MEAL_PLANS, meal_plan_id, user_id)

    # ===== AGGREGATES =====

    async def get_user_stats(self, user_id: str) -> UserStats:
        """
        Reads the four collections for ``user_id`` concurrently. A failure in any
        one of the reads fails the whole call.
        """
        profile, meal_logs, meal_plans, schedules = await asyncio.gather(
            self.get_user_profile(user_id),
            self.get_user_meal_logs(user_id),
            self.get_user_meal_plans(user_id),
            self.get_user_activity_schedules(user_id),
        )
        return UserStats(
            total_meal_logs=len(meal_logs),
            total_meal_plans=len(meal_plans),
            total_activities=sum(len(schedule.schedule) for schedule in schedules),
            profile_complete=profile is not None,
        )

    async def test_connection(self) -> Dict[str, Any]:
        """Probes each collection once and reports which ones were reachable."""
        collections: Dict[str, bool] = {}
        try:
            for family in ENTITY_FAMILIES:
                await self._store.list_documents(family.collection_id, limit=1)
                collections[family.collection_id] = True
        except FuelWardenError as e:
            logger.error(f"Database connection test failed: {e.message}")
            return {
                "success": False,
                "message": f"Database connection failed: {e.message}",
                "collections": collections,
            }
        return {
            "success": True,
            "message": "Database connection successful",
            "collections": collections,
        }
