import asyncio
import logging
from datetime import date

import pytest

from fuelwarden.core.exceptions import (
    DuplicateError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    RemoteError,
    ValidationError,
)
from fuelwarden.db.store import owner_permissions
from fuelwarden.models.profile import Sex
from fuelwarden.services.database import (
    ACTIVITY_SCHEDULE_COLLECTION_ID,
    MEAL_LOGS_COLLECTION_ID,
    USER_PROFILES_COLLECTION_ID,
    DatabaseService,
)

from conftest import OTHER_USER_ID, USER_ID


def _schedule_item(day, activity, time_of_day="morning"):
    return {"day_of_week": day, "time_of_day": time_of_day, "activity": activity}


def _meal_log(on_date="2024-05-01", meal_type="breakfast"):
    return {
        "user_id": USER_ID,
        "date": on_date,
        "meal_type": meal_type,
        "foods": [
            {"name": "Oats", "calories": 150, "protein": 5, "carbs": 27, "fat": 3, "quantity": 40, "unit": "g"},
            {"name": "Milk", "calories": 120.5, "protein": 8, "carbs": 12, "fat": 4.5, "quantity": 250, "unit": "ml"},
        ],
    }


# ===== USER PROFILES =====


async def test_profile_round_trip_maps_sex(database, store, profile_data):
    created = await database.create_user_profile(profile_data)

    stored = store.collections[USER_PROFILES_COLLECTION_ID][created.id]
    assert stored["sex"] == "Female"
    assert stored["userId"] == USER_ID
    assert stored["weightPounds"] == 140
    assert stored["permissions"] == owner_permissions(USER_ID)

    fetched = await database.get_user_profile(USER_ID)
    assert fetched.id == created.id
    assert fetched.sex == Sex.FEMALE
    assert fetched.age == 30
    assert fetched.wakeup_time == "06:30"
    assert fetched.supplements == ["Creatine"]


async def test_get_profile_reads_non_binary_as_other(database, store):
    store.seed(
        USER_PROFILES_COLLECTION_ID,
        {"userId": USER_ID, "age": 25, "sex": "Non-Binary", "weightPounds": 150, "heightInches": 68},
    )

    profile = await database.get_user_profile(USER_ID)

    assert profile.sex == Sex.OTHER


async def test_get_profile_accepts_legacy_lowercase_sex(database, store):
    store.seed(
        USER_PROFILES_COLLECTION_ID,
        {"userId": USER_ID, "age": 25, "sex": "male", "weightPounds": 150, "heightInches": 68},
    )

    profile = await database.get_user_profile(USER_ID)

    assert profile.sex == Sex.MALE


async def test_get_profile_without_document_returns_none(database):
    assert await database.get_user_profile(USER_ID) is None


async def test_get_profile_requires_user_id(database):
    with pytest.raises(NotAuthenticatedError):
        await database.get_user_profile("")


async def test_create_profile_twice_is_a_duplicate(database, profile_data):
    await database.create_user_profile(profile_data)

    with pytest.raises(DuplicateError) as exc_info:
        await database.create_user_profile(profile_data)

    assert exc_info.value.message == (
        "Failed to create user profile: A user profile already exists for user 'user-1'"
    )


async def test_get_profile_with_duplicate_documents_uses_first(database, store, caplog):
    base = {"userId": USER_ID, "sex": "Male", "weightPounds": 150, "heightInches": 68}
    first = store.seed(USER_PROFILES_COLLECTION_ID, {**base, "age": 20})
    store.seed(USER_PROFILES_COLLECTION_ID, {**base, "age": 40})

    with caplog.at_level(logging.WARNING):
        profile = await database.get_user_profile(USER_ID)

    assert profile.id == first
    assert profile.age == 20
    assert "Data integrity anomaly" in caplog.text


async def test_malformed_stored_profile_is_a_remote_error(database, store):
    store.seed(USER_PROFILES_COLLECTION_ID, {"userId": USER_ID, "age": "old", "sex": "Male"})

    with pytest.raises(RemoteError):
        await database.get_user_profile(USER_ID)


@pytest.mark.parametrize(
    "field, value",
    [
        ("age", 13),
        ("age", 120),
        ("weight_pounds", 50),
        ("weight_pounds", 500),
        ("height_inches", 48),
        ("height_inches", 96),
    ],
)
async def test_profile_range_bounds_are_inclusive(database, profile_data, field, value):
    profile = await database.create_user_profile({**profile_data, field: value})
    assert getattr(profile, field) == value


@pytest.mark.parametrize(
    "field, value",
    [
        ("age", 12),
        ("age", 121),
        ("weight_pounds", 49.9),
        ("weight_pounds", 500.1),
        ("height_inches", 47),
        ("height_inches", 97),
        ("sex", "unknown"),
        ("wakeup_time", "6:30am"),
    ],
)
async def test_profile_out_of_range_fails_before_any_store_call(
    database, store, profile_data, field, value
):
    with pytest.raises(ValidationError) as exc_info:
        await database.create_user_profile({**profile_data, field: value})

    assert exc_info.value.field == field
    assert store.calls == []


async def test_blank_times_are_stored_as_absent(database, profile_data):
    profile = await database.create_user_profile({**profile_data, "wakeup_time": "", "bed_time": " "})

    assert profile.wakeup_time is None
    assert profile.bed_time is None


async def test_update_profile_writes_only_given_fields(database, store, profile_data):
    created = await database.create_user_profile(profile_data)

    updated = await database.update_user_profile(created.id, {"weight_pounds": 150, "sex": "male"})

    assert updated.weight_pounds == 150
    assert updated.sex == Sex.MALE
    assert updated.age == 30
    assert store.collections[USER_PROFILES_COLLECTION_ID][created.id]["sex"] == "Male"


async def test_update_profile_with_no_fields_is_rejected(database, profile_data):
    created = await database.create_user_profile(profile_data)

    with pytest.raises(ValidationError) as exc_info:
        await database.update_user_profile(created.id, {})

    assert exc_info.value.field == "updates"


@pytest.mark.parametrize(
    "field", ["age", "weight_pounds", "height_inches", "sex", "goals", "activities"]
)
async def test_update_profile_refuses_null_for_required_fields(
    database, store, profile_data, field
):
    created = await database.create_user_profile(profile_data)

    with pytest.raises(ValidationError) as exc_info:
        await database.update_user_profile(created.id, {field: None})

    assert exc_info.value.field == field
    assert "update_document" not in store.calls
    assert (await database.get_user_profile(USER_ID)).age == 30


async def test_update_profile_clears_optional_fields(database, profile_data):
    created = await database.create_user_profile(profile_data)

    updated = await database.update_user_profile(
        created.id, {"wakeup_time": None, "supplements": None}
    )

    assert updated.wakeup_time is None
    assert updated.supplements is None


async def test_update_profile_rejects_unknown_fields(database, profile_data):
    created = await database.create_user_profile(profile_data)

    with pytest.raises(ValidationError) as exc_info:
        await database.update_user_profile(created.id, {"favourite_colour": "green"})

    assert exc_info.value.field == "favourite_colour"


async def test_update_missing_profile_is_not_found(database):
    with pytest.raises(NotFoundError) as exc_info:
        await database.update_user_profile("missing", {"age": 40})

    assert exc_info.value.message.startswith("Failed to update user profile: ")


async def test_update_profile_owned_by_another_user_is_denied(database, store):
    document_id = store.seed(
        USER_PROFILES_COLLECTION_ID,
        {
            "userId": OTHER_USER_ID,
            "age": 30,
            "sex": "Male",
            "weightPounds": 150,
            "heightInches": 68,
            "permissions": owner_permissions(OTHER_USER_ID),
        },
    )

    with pytest.raises(PermissionDeniedError):
        await database.update_user_profile(document_id, {"age": 31})
    assert await database.get_user_profile(OTHER_USER_ID) is None


async def test_delete_profile_then_get_returns_none(database, profile_data):
    created = await database.create_user_profile(profile_data)

    await database.delete_user_profile(created.id, USER_ID)

    assert await database.get_user_profile(USER_ID) is None
    with pytest.raises(NotFoundError):
        await database.delete_user_profile(created.id, USER_ID)


async def test_delete_profile_requires_user_id(database, profile_data):
    created = await database.create_user_profile(profile_data)

    with pytest.raises(NotAuthenticatedError):
        await database.delete_user_profile(created.id, "")


async def test_delete_profile_for_another_user_is_denied(database, profile_data):
    created = await database.create_user_profile(profile_data)

    with pytest.raises(PermissionDeniedError):
        await database.delete_user_profile(created.id, OTHER_USER_ID)
    assert await database.get_user_profile(USER_ID) is not None


async def test_upsert_profile_twice_keeps_one_document(database, store, profile_data):
    first = await database.upsert_user_profile(profile_data)
    second = await database.upsert_user_profile({**profile_data, "age": 31})

    assert second.id == first.id
    assert second.age == 31
    assert len(store.collections[USER_PROFILES_COLLECTION_ID]) == 1


async def test_concurrent_upserts_create_one_document(database, store, profile_data):
    results = await asyncio.gather(
        database.upsert_user_profile(profile_data),
        database.upsert_user_profile({**profile_data, "age": 45}),
    )

    assert results[0].id == results[1].id
    assert len(store.collections[USER_PROFILES_COLLECTION_ID]) == 1


async def test_store_failures_carry_the_operation(database, store):
    store.failures["list_documents"] = RemoteError("connection reset")

    with pytest.raises(RemoteError) as exc_info:
        await database.get_user_profile(USER_ID)

    assert exc_info.value.message == "Failed to get user profile: connection reset"


# ===== ACTIVITY SCHEDULES =====


async def test_upsert_schedule_drops_blank_activities(database, store):
    schedule = await database.upsert_activity_schedule(
        {
            "user_id": USER_ID,
            "schedule": [
                _schedule_item("Monday", "Running"),
                _schedule_item("Tuesday", "   "),
                _schedule_item("Wednesday", "Yoga", "evening"),
            ],
        }
    )

    assert [item.activity for item in schedule.schedule] == ["Running", "Yoga"]
    stored = store.collections[ACTIVITY_SCHEDULE_COLLECTION_ID][schedule.id]
    assert len(stored["schedule"]) == 2
    assert stored["schedule"][0]["dayOfWeek"] == "Monday"


async def test_upsert_schedule_replaces_existing(database, store):
    first = await database.upsert_activity_schedule(
        {"user_id": USER_ID, "schedule": [_schedule_item("Monday", "Running")]}
    )
    second = await database.upsert_activity_schedule(
        {"user_id": USER_ID, "schedule": [_schedule_item("Friday", "Swimming")]}
    )

    assert second.id == first.id
    assert [item.day_of_week.value for item in second.schedule] == ["Friday"]
    assert len(store.collections[ACTIVITY_SCHEDULE_COLLECTION_ID]) == 1


async def test_schedule_rejects_invalid_duration(database):
    item = {**_schedule_item("Monday", "Running"), "duration_minutes": 10}

    with pytest.raises(ValidationError) as exc_info:
        await database.create_activity_schedule({"user_id": USER_ID, "schedule": [item]})

    assert exc_info.value.field.startswith("schedule.0.")


async def test_update_schedule_refuses_null(database, store):
    schedule = await database.create_activity_schedule(
        {"user_id": USER_ID, "schedule": [_schedule_item("Monday", "Running")]}
    )

    with pytest.raises(ValidationError) as exc_info:
        await database.update_activity_schedule(schedule.id, {"schedule": None})

    assert exc_info.value.field == "schedule"
    assert "update_document" not in store.calls


async def test_delete_schedule(database):
    schedule = await database.create_activity_schedule(
        {"user_id": USER_ID, "schedule": [_schedule_item("Monday", "Running")]}
    )

    await database.delete_activity_schedule(schedule.id, USER_ID)

    assert await database.get_activity_schedule(USER_ID) is None


# ===== MEAL LOGS AND PLANS =====


async def test_meal_log_totals_are_summed_from_foods(database):
    meal_log = await database.create_meal_log(_meal_log())

    assert meal_log.total_calories == 270.5
    assert meal_log.total_protein == 13
    assert meal_log.total_fat == 7.5
    assert meal_log.date == date(2024, 5, 1)


async def test_meal_log_keeps_supplied_totals(database):
    meal_log = await database.create_meal_log({**_meal_log(), "total_calories": 300})

    assert meal_log.total_calories == 300
    assert meal_log.total_carbs == 39


async def test_meal_logs_filter_by_date(database):
    await database.create_meal_log(_meal_log("2024-05-01", "breakfast"))
    await database.create_meal_log(_meal_log("2024-05-01", "dinner"))
    await database.create_meal_log(_meal_log("2024-05-02", "lunch"))

    assert len(await database.get_user_meal_logs(USER_ID)) == 3
    on_first = await database.get_user_meal_logs(USER_ID, date(2024, 5, 1))
    assert sorted(log.meal_type.value for log in on_first) == ["breakfast", "dinner"]


async def test_meal_logs_reject_invalid_date_filter(database, store):
    with pytest.raises(ValidationError) as exc_info:
        await database.get_user_meal_logs(USER_ID, "2024-13-01")

    assert exc_info.value.field == "date"
    assert store.calls == []


async def test_meal_log_update_and_delete(database, store):
    meal_log = await database.create_meal_log(_meal_log())

    updated = await database.update_meal_log(meal_log.id, {"notes": "Post-run"})
    assert updated.notes == "Post-run"
    assert updated.total_calories == 270.5

    await database.delete_meal_log(meal_log.id, USER_ID)
    assert store.collections[MEAL_LOGS_COLLECTION_ID] == {}


@pytest.mark.parametrize("field", ["date", "meal_type", "foods", "total_calories"])
async def test_update_meal_log_refuses_null_for_required_fields(database, store, field):
    meal_log = await database.create_meal_log(_meal_log())

    with pytest.raises(ValidationError) as exc_info:
        await database.update_meal_log(meal_log.id, {field: None})

    assert exc_info.value.field == field
    assert "update_document" not in store.calls
    [stored] = await database.get_user_meal_logs(USER_ID)
    assert stored.date == date(2024, 5, 1)


async def test_update_meal_log_clears_notes(database):
    meal_log = await database.create_meal_log({**_meal_log(), "notes": "Pre-run"})

    updated = await database.update_meal_log(meal_log.id, {"notes": None})

    assert updated.notes is None


@pytest.mark.parametrize("field", ["date", "meals", "total_fat"])
async def test_update_meal_plan_refuses_null_for_required_fields(database, store, field):
    meal_plan = await database.create_meal_plan(
        {"user_id": USER_ID, "date": "2024-05-03", "meals": []}
    )

    with pytest.raises(ValidationError) as exc_info:
        await database.update_meal_plan(meal_plan.id, {field: None})

    assert exc_info.value.field == field
    assert "update_document" not in store.calls


async def test_meal_plan_totals_span_all_meals(database):
    food = {"name": "Rice", "calories": 200, "protein": 4, "carbs": 45, "fat": 0.5, "quantity": 1, "unit": "cup"}
    plan = await database.create_meal_plan(
        {
            "user_id": USER_ID,
            "date": "2024-05-03",
            "meals": [
                {"meal_type": "lunch", "foods": [food]},
                {"meal_type": "dinner", "foods": [food, food]},
            ],
        }
    )

    assert plan.total_calories == 600
    assert plan.total_carbs == 135
    assert len(await database.get_user_meal_plans(USER_ID, "2024-05-03")) == 1


# ===== AGGREGATES =====


async def test_stats_for_new_user_are_empty(database):
    stats = await database.get_user_stats(USER_ID)

    assert stats.total_meal_logs == 0
    assert stats.total_meal_plans == 0
    assert stats.total_activities == 0
    assert stats.profile_complete is False


async def test_stats_count_each_collection(database, profile_data):
    await database.create_user_profile(profile_data)
    await database.create_meal_log(_meal_log())
    await database.create_meal_log(_meal_log(meal_type="lunch"))
    await database.upsert_activity_schedule(
        {
            "user_id": USER_ID,
            "schedule": [_schedule_item("Monday", "Running"), _schedule_item("Friday", "Yoga")],
        }
    )

    stats = await database.get_user_stats(USER_ID)

    assert stats.total_meal_logs == 2
    assert stats.total_meal_plans == 0
    assert stats.total_activities == 2
    assert stats.profile_complete is True


async def test_stats_fail_when_any_read_fails(database, store):
    store.failures["list_documents"] = RemoteError("unavailable")

    with pytest.raises(RemoteError):
        await database.get_user_stats(USER_ID)


async def test_connection_reports_each_collection(database):
    result = await database.test_connection()

    assert result["success"] is True
    assert set(result["collections"]) == {
        "user_profiles",
        "meal_logs",
        "meal_plans",
        "activity_schedule",
    }


async def test_connection_failure_is_reported_not_raised(store):
    store.failures["list_documents"] = RemoteError("unavailable")

    result = await DatabaseService(store).test_connection()

    assert result["success"] is False
    assert "unavailable" in result["message"]
