import pytest
from pydantic import ValidationError as RecordError

from trailhub.config import DEFAULT_HIGHLIGHTS, DEFAULT_TRAIL_RATING
from trailhub.core.models import (
    Activity,
    AggregateStats,
    CompletionRecord,
    Difficulty,
    ExperienceLevel,
    Identity,
    Profile,
    Trail,
    format_price,
)


def test_trail_from_record_applies_display_defaults():
    trail = Trail.from_record({"id": 7, "name": "Hallasan", "country": "Korea", "location": None})

    assert trail.id == "7"
    assert trail.region == ""
    assert trail.rating == DEFAULT_TRAIL_RATING
    assert trail.highlights == DEFAULT_HIGHLIGHTS
    assert trail.price == "Free"
    assert trail.difficulty == Difficulty.BEGINNER


def test_trail_defaults_are_not_shared_between_instances():
    a = Trail.from_record({"id": 1, "name": "A"})
    b = Trail.from_record({"id": 2, "name": "B"})
    a.highlights.append("changed")
    assert b.highlights == DEFAULT_HIGHLIGHTS


def test_trail_accepts_korean_difficulty_labels():
    trail = Trail.from_record({"id": 1, "name": "Seoraksan", "difficulty": "고급"})
    assert trail.difficulty == Difficulty.ADVANCED


def test_trail_without_name_is_rejected():
    with pytest.raises(RecordError):
        Trail.from_record({"id": 1, "name": None})


def test_format_price():
    assert format_price(None) == "Free"
    assert format_price(0) == "Free"
    assert format_price(1200000) == "₩1,200,000"


@pytest.mark.parametrize("user,expected", [
    ({"id": "u", "email": "a@b.com", "user_metadata": {"full_name": "Kim Minji"}}, "Kim Minji"),
    ({"id": "u", "email": "hiker@b.com", "user_metadata": {}}, "hiker"),
    ({"id": "u"}, "User"),
])
def test_identity_name_fallbacks(user, expected):
    assert Identity.from_user(user).name == expected


def test_identity_keeps_join_day_only():
    identity = Identity.from_user({"id": "u", "email": "a@b.com", "created_at": "2024-05-03T10:11:12.123Z"})
    assert identity.joined_at.isoformat() == "2024-05-03"


def test_profile_from_record_maps_legacy_labels_and_blank_fields():
    identity = Identity(id="u", name="Minji", email="minji@example.com")
    profile = Profile.from_record(
        {"id": "u", "full_name": None, "experience_level": "전문가", "favorite_activity": None},
        identity,
    )
    assert profile.experience_level == ExperienceLevel.EXPERT
    assert profile.favorite_activity == Activity.HIKING
    assert profile.full_name == ""
    assert profile.email == "minji@example.com"


def test_aggregate_stats_from_record_parses_numeric_strings():
    stats = AggregateStats.from_record({"completed_courses": 3, "total_distance": "42.5", "favorite_courses": None})
    assert stats == AggregateStats(completed_count=3, total_distance=42.5, favorite_count=0)


def test_completion_record_from_joined_row():
    record = CompletionRecord.from_record({
        "id": 5, "user_id": "u", "course_id": 2, "rating": 4, "review": None,
        "completed_at": "2024-06-01T00:00:00+00:00", "weather_conditions": "sunny",
        "hiking_courses": {"name": "Jeju Olle", "location": "Jeju", "difficulty": "중급"},
    })
    assert record.trail_id == "2"
    assert record.completed_at.isoformat() == "2024-06-01"
    assert record.weather == "sunny"
    assert record.trail.difficulty == Difficulty.INTERMEDIATE
