"""
Configuration Module.

This module defines global configuration settings.
Use the .env file to set secrets.
"""

import os
from enum import Enum
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

# --- Backend (Supabase-compatible) ---
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY: Optional[str] = os.getenv("SUPABASE_ANON_KEY")

# --- App Settings ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_USER_AGENT: str = "TrailHub/1.0"
DEFAULT_TIMEOUT: int = 10
SESSION_TIMEOUT: int = 3600  # Idle visitor sessions are dropped after 1 hour

# --- Tables, RPCs & Buckets ---
TRAILS_TABLE: str = "hiking_courses"
FAVORITES_TABLE: str = "user_favorites"
COMPLETIONS_TABLE: str = "course_completions"
PROFILES_TABLE: str = "profiles"
STATS_RPC: str = "get_user_stats"
AVATAR_BUCKET: str = "avatars"

# --- Display Defaults ---
# Applied to catalog records that do not carry these fields.
DEFAULT_TRAIL_RATING: float = 4.5
DEFAULT_HIGHLIGHTS: List[str] = ["Scenic views", "Great trekking", "Recommended course"]
DEFAULT_BEST_SEASON: List[str] = ["April", "May", "September", "October"]
FREE_PRICE_LABEL: str = "Free"

# --- Rating Bounds ---
MIN_RATING: int = 1
MAX_RATING: int = 5


# --- Definitions for State Notifications ---
class StateEvent(str, Enum):
    """Kinds of state-change notifications emitted by the state components."""
    SESSION = "session"
    CATALOG = "catalog"
    FAVORITES = "favorites"
    COMPLETIONS = "completions"
    PROFILE = "profile"
    STATS = "stats"
    COMMUNITY = "community"
    PLANS = "plans"
    ERROR = "error"
