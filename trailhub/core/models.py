"""
Domain Models.

Typed entities for everything that crosses the backend boundary. Raw store
rows are mapped here once, with missing optional fields replaced by fixed
defaults, so the rest of the package never handles untyped records.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from trailhub.config import (
    DEFAULT_BEST_SEASON,
    DEFAULT_HIGHLIGHTS,
    DEFAULT_TRAIL_RATING,
    FREE_PRICE_LABEL,
)
from trailhub.core.utils import display_name_for


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class Activity(str, Enum):
    HIKING = "hiking"
    TREKKING = "trekking"
    CLIMBING = "climbing"
    BACKPACKING = "backpacking"
    CAMPING = "camping"


# Labels used by the existing Korean content and profile rows.
DIFFICULTY_ALIASES: Dict[str, str] = {
    "초급": "beginner",
    "중급": "intermediate",
    "고급": "advanced",
}

EXPERIENCE_ALIASES: Dict[str, str] = {
    **DIFFICULTY_ALIASES,
    "전문가": "expert",
}

ACTIVITY_ALIASES: Dict[str, str] = {
    "하이킹": "hiking",
    "트레킹": "trekking",
    "등반": "climbing",
    "백패킹": "backpacking",
    "캠핑": "camping",
}


def _normalize_label(value: Any, aliases: Dict[str, str]) -> Any:
    if isinstance(value, str):
        cleaned = value.strip()
        return aliases.get(cleaned, cleaned.lower())
    return value


def _as_date(value: Any) -> Any:
    # The store returns timestamptz strings; only the calendar day is kept.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


def format_price(price_krw: Optional[int]) -> str:
    """Formats a KRW price for display, 'Free' when unset or zero."""
    if not price_krw:
        return FREE_PRICE_LABEL
    return f"₩{price_krw:,}"


# -------------------------
# Identity & Session
# -------------------------

class Identity(BaseModel):
    id: str
    name: str
    email: str = ""
    joined_at: Optional[date] = None

    @field_validator("joined_at", mode="before")
    @classmethod
    def joined_day(cls, v: Any) -> Any:
        return _as_date(v)

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "Identity":
        """Build an Identity from an auth user payload."""
        email = user.get("email") or ""
        metadata = user.get("user_metadata") or {}
        name = display_name_for(metadata.get("full_name") or "", email)
        return cls(id=user["id"], name=name, email=email, joined_at=user.get("created_at"))


class AuthSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    identity: Identity


class AuthEvent(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


# -------------------------
# Catalog
# -------------------------

class Trail(BaseModel):
    """A catalog entry in its display shape."""
    id: str
    name: str
    country: str = ""
    region: str = ""
    difficulty: Difficulty = Difficulty.BEGINNER
    distance_km: float = 0.0
    duration_hours: float = 0.0
    elevation_gain: int = 0
    description: str = ""
    image_url: str = ""
    price: str = FREE_PRICE_LABEL
    rating: float = DEFAULT_TRAIL_RATING
    highlights: List[str] = Field(default_factory=lambda: list(DEFAULT_HIGHLIGHTS))
    best_season: List[str] = Field(default_factory=lambda: list(DEFAULT_BEST_SEASON))

    @field_validator("difficulty", mode="before")
    @classmethod
    def difficulty_alias(cls, v: Any) -> Any:
        return _normalize_label(v, DIFFICULTY_ALIASES)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Trail":
        """
        Map a `hiking_courses` row into a Trail.

        Null optional columns fall back to display defaults. A row without
        an id or name is rejected (pydantic raises).
        """
        data: Dict[str, Any] = {
            "id": str(record["id"]) if record.get("id") is not None else None,
            "name": record.get("name"),
            "country": record.get("country") or "",
            "region": record.get("location") or "",
            "distance_km": record.get("distance_km") or 0.0,
            "duration_hours": record.get("duration_hours") or 0.0,
            "elevation_gain": record.get("elevation_gain") or 0,
            "description": record.get("description") or "",
            "image_url": record.get("image_url") or "",
            "price": format_price(record.get("price_krw")),
        }
        if record.get("difficulty"):
            data["difficulty"] = record["difficulty"]
        if record.get("rating") is not None:
            data["rating"] = record["rating"]
        if record.get("highlights"):
            data["highlights"] = record["highlights"]
        if record.get("best_season"):
            data["best_season"] = record["best_season"]
        return cls(**data)


class TrailSummary(BaseModel):
    """The trail columns joined onto a completion record."""
    name: str = ""
    region: str = ""
    country: str = ""
    difficulty: Optional[Difficulty] = None
    distance_km: float = 0.0
    image_url: str = ""

    @field_validator("difficulty", mode="before")
    @classmethod
    def difficulty_alias(cls, v: Any) -> Any:
        return _normalize_label(v, DIFFICULTY_ALIASES) or None


# -------------------------
# Completions
# -------------------------

class CompletionRecord(BaseModel):
    id: Optional[str] = None
    user_id: str
    trail_id: str
    rating: int = Field(..., ge=1, le=5)
    review: str = ""
    completed_at: date
    difficulty_experienced: str = ""
    weather: str = ""
    companions: str = ""
    trail: Optional[TrailSummary] = None

    @field_validator("completed_at", mode="before")
    @classmethod
    def completed_day(cls, v: Any) -> Any:
        return _as_date(v)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CompletionRecord":
        joined = record.get("hiking_courses")
        trail = None
        if isinstance(joined, dict):
            trail = TrailSummary(
                name=joined.get("name") or "",
                region=joined.get("location") or "",
                country=joined.get("country") or "",
                difficulty=joined.get("difficulty"),
                distance_km=joined.get("distance_km") or 0.0,
                image_url=joined.get("image_url") or "",
            )
        return cls(
            id=str(record["id"]) if record.get("id") is not None else None,
            user_id=str(record["user_id"]),
            trail_id=str(record["course_id"]),
            rating=record["rating"],
            review=record.get("review") or "",
            completed_at=record["completed_at"],
            difficulty_experienced=record.get("difficulty_experienced") or "",
            weather=record.get("weather_conditions") or "",
            companions=record.get("companions") or "",
            trail=trail,
        )

    def to_fields(self) -> Dict[str, Any]:
        """Columns written on insert/update (key columns excluded)."""
        return {
            "rating": self.rating,
            "review": self.review,
            "completed_at": datetime.combine(self.completed_at, datetime.min.time()).isoformat(),
            "difficulty_experienced": self.difficulty_experienced,
            "weather_conditions": self.weather,
            "companions": self.companions,
        }


# -------------------------
# Profile & Stats
# -------------------------

class Profile(BaseModel):
    id: str
    full_name: str = ""
    email: str = ""
    avatar_url: str = ""
    bio: str = ""
    location: str = ""
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    favorite_activity: Activity = Activity.HIKING

    @field_validator("experience_level", mode="before")
    @classmethod
    def experience_alias(cls, v: Any) -> Any:
        return _normalize_label(v, EXPERIENCE_ALIASES) or ExperienceLevel.BEGINNER

    @field_validator("favorite_activity", mode="before")
    @classmethod
    def activity_alias(cls, v: Any) -> Any:
        return _normalize_label(v, ACTIVITY_ALIASES) or Activity.HIKING

    @classmethod
    def default_for(cls, identity: Identity) -> "Profile":
        """Seed a profile for an identity that has not saved one yet."""
        return cls(id=identity.id, full_name=identity.name, email=identity.email)

    @classmethod
    def from_record(cls, record: Dict[str, Any], identity: Identity) -> "Profile":
        return cls(
            id=identity.id,
            full_name=record.get("full_name") or "",
            email=identity.email,
            avatar_url=record.get("avatar_url") or "",
            bio=record.get("bio") or "",
            location=record.get("location") or "",
            experience_level=record.get("experience_level"),
            favorite_activity=record.get("favorite_activity"),
        )


class AggregateStats(BaseModel):
    completed_count: int = 0
    total_distance: float = 0.0
    favorite_count: int = 0

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AggregateStats":
        try:
            distance = float(record.get("total_distance") or 0)
        except (TypeError, ValueError):
            distance = 0.0
        return cls(
            completed_count=record.get("completed_courses") or 0,
            total_distance=distance,
            favorite_count=record.get("favorite_courses") or 0,
        )


# -------------------------
# Community & Plans
# -------------------------

class CommunityPost(BaseModel):
    id: int
    title: str
    author: str
    posted: str
    replies: int = 0
    content: str


class Destination(BaseModel):
    name: str
    country: str
    count: int
    image: str


class HikePlan(BaseModel):
    id: int
    trail_id: str
    trail_name: str
    planned_on: date
    status: str = "planned"
