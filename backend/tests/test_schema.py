"""Tests for EntitySchema validation and the DanceHub payload models."""

import pytest

from dancehub.crud.errors import ValidationError
from dancehub.features.schemas import (
    EVENT_SCHEMA,
    LOCATION_SCHEMA,
    POST_SCHEMA,
    TAG_SCHEMA,
    USER_SCHEMA,
    check_person_name,
)


def _paths(exc_info) -> list[str]:
    return [issue.path for issue in exc_info.value.issues]


def _social(**overrides):
    event = {
        "type": "social",
        "title": "Friday Social",
        "description": "Weekly social",
        "time": "2025-06-06T20:00:00Z",
        "isPaid": False,
        "locationId": "loc1",
    }
    event.update(overrides)
    return event


# =============================================================================
# Full validation
# =============================================================================


class TestValidateFull:
    def test_location_valid(self):
        data = LOCATION_SCHEMA.validate_full(
            {
                "name": "Studio",
                "address": "1 Main St",
                "city": "Madrid",
                "country": "Spain",
                "coordinates": {"lat": 40.4, "lng": -3.7},
            }
        )
        assert data["coordinates"] == {"lat": 40.4, "lng": -3.7}

    def test_missing_fields_reported_by_path(self):
        with pytest.raises(ValidationError) as exc_info:
            LOCATION_SCHEMA.validate_full({"name": "Studio"})
        assert set(_paths(exc_info)) == {"address", "city", "country"}

    def test_nested_path(self):
        with pytest.raises(ValidationError) as exc_info:
            LOCATION_SCHEMA.validate_full(
                {
                    "name": "S",
                    "address": "A",
                    "city": "C",
                    "country": "X",
                    "coordinates": {"lat": "north", "lng": 1},
                }
            )
        assert _paths(exc_info) == ["coordinates.lat"]

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            TAG_SCHEMA.validate_full({"name": "salsa", "bogus": 1})
        assert _paths(exc_info) == ["bogus"]

    def test_defaults_applied(self):
        data = TAG_SCHEMA.validate_full({"name": "salsa"})
        assert data == {"name": "salsa", "category": "general", "isActive": True}

        post = POST_SCHEMA.validate_full({"content": "hello"})
        assert post == {"content": "hello", "images": [], "tags": [], "published": True}

    def test_details_shape(self):
        with pytest.raises(ValidationError) as exc_info:
            TAG_SCHEMA.validate_full({"name": ""})
        details = exc_info.value.details
        assert details[0]["path"] == "name"
        assert isinstance(details[0]["message"], str)


class TestEventUnion:
    def test_social_event(self):
        data = EVENT_SCHEMA.validate_full(_social())
        assert data["type"] == "social"
        assert data["published"] is False
        assert data["time"].startswith("2025-06-06T20:00:00")

    def test_time_normalised_to_utc(self):
        data = EVENT_SCHEMA.validate_full(_social(time="2025-06-06T22:00:00+02:00"))
        assert data["time"] == "2025-06-06T20:00:00Z"

    def test_time_without_offset_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            EVENT_SCHEMA.validate_full(_social(time="2025-06-06T20:00:00"))
        assert _paths(exc_info) == ["time"]

    def test_partial_time_normalised_to_utc(self):
        data = EVENT_SCHEMA.validate_partial({"time": "2025-06-06T15:00:00-05:00"})
        assert data == {"time": "2025-06-06T20:00:00Z"}

        with pytest.raises(ValidationError):
            EVENT_SCHEMA.validate_partial({"startDate": "2025-07-01T00:00:00"})

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            EVENT_SCHEMA.validate_full(_social(type="rave"))

    def test_festival_requires_performers(self):
        festival = _social(
            type="festival",
            startDate="2025-07-01T00:00:00Z",
            endDate="2025-07-03T00:00:00Z",
            performers=[],
        )
        with pytest.raises(ValidationError) as exc_info:
            EVENT_SCHEMA.validate_full(festival)
        assert _paths(exc_info) == ["performers"]

    def test_festival_end_after_start(self):
        festival = _social(
            type="festival",
            startDate="2025-07-03T00:00:00Z",
            endDate="2025-07-01T00:00:00Z",
            performers=["Band"],
        )
        with pytest.raises(ValidationError) as exc_info:
            EVENT_SCHEMA.validate_full(festival)
        assert _paths(exc_info) == ["endDate"]
        assert "End date must be after start date" in exc_info.value.issues[0].message

    def test_private_session_duration_bounds(self):
        session = _social(type="private-session", duration=5, skillLevel="beginner")
        with pytest.raises(ValidationError) as exc_info:
            EVENT_SCHEMA.validate_full(session)
        assert _paths(exc_info) == ["duration"]

    def test_workshop_defaults_enrolled_students(self):
        workshop = _social(type="workshop", skillLevel="advanced", maxStudents=10)
        assert EVENT_SCHEMA.validate_full(workshop)["enrolledStudents"] == []

    def test_negative_price(self):
        with pytest.raises(ValidationError) as exc_info:
            EVENT_SCHEMA.validate_full(_social(price=-1))
        assert _paths(exc_info) == ["price"]


# =============================================================================
# Partial validation
# =============================================================================


class TestValidatePartial:
    def test_only_present_fields_checked(self):
        assert LOCATION_SCHEMA.validate_partial({"name": "New name"}) == {"name": "New name"}

    def test_field_constraints_apply(self):
        with pytest.raises(ValidationError) as exc_info:
            USER_SCHEMA.validate_partial({"avatarX": 150})
        assert _paths(exc_info) == ["avatarX"]

    def test_unknown_field(self):
        with pytest.raises(ValidationError) as exc_info:
            LOCATION_SCHEMA.validate_partial({"nmae": "typo"})
        assert _paths(exc_info) == ["nmae"]
        assert exc_info.value.issues[0].message == "Unknown field"

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            LOCATION_SCHEMA.validate_partial(["name"])

    def test_union_fields_accepted(self):
        # duration only exists on private sessions
        assert EVENT_SCHEMA.validate_partial({"duration": 60}) == {"duration": 60}

    def test_name_and_email_validators_apply(self):
        with pytest.raises(ValidationError) as exc_info:
            USER_SCHEMA.validate_partial({"name": "R2-D2", "email": "not-an-email"})
        assert set(_paths(exc_info)) == {"name", "email"}

    def test_empty_payload(self):
        assert TAG_SCHEMA.validate_partial({}) == {}


class TestQueryCoercion:
    def test_bool_and_number(self):
        assert POST_SCHEMA.coerce_query_value("published", "true") is True
        assert EVENT_SCHEMA.coerce_query_value("maxAttendees", "10") == 10

    def test_uncoercible_returned_unchanged(self):
        assert EVENT_SCHEMA.coerce_query_value("maxAttendees", "lots") == "lots"

    def test_unknown_field_returned_unchanged(self):
        assert TAG_SCHEMA.coerce_query_value("whatever", "x") == "x"

    def test_field_names(self):
        assert {"name", "category", "isActive"} <= TAG_SCHEMA.field_names
        assert {"duration", "performers", "type"} <= EVENT_SCHEMA.field_names


class TestPersonName:
    @pytest.mark.parametrize("name", ["Anne-Marie", "O'Connor", "José Álvarez", "Zoë"])
    def test_valid(self, name):
        assert check_person_name(name) == name

    @pytest.mark.parametrize("name", ["A", " Ana", "Ana ", "Ana1", "x" * 61])
    def test_invalid(self, name):
        with pytest.raises(ValueError):
            check_person_name(name)
