import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from trailhub.backend.supabase import SupabaseBackend
from trailhub.config import SESSION_TIMEOUT
from trailhub.core.errors import (
    BackendError,
    NotAuthenticatedError,
    ToggleInProgressError,
    ValidationError,
)
from trailhub.core.models import (
    Activity,
    CommunityPost,
    CompletionRecord,
    Destination,
    ExperienceLevel,
    HikePlan,
    Profile,
    Trail,
)
from trailhub.orchestration.app import TrailHubApp
from trailhub.state.community import POPULAR_DESTINATIONS
from trailhub.state.observable import StateChange
from trailhub.state.search import ALL

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("TrailHub API")


# -------------------------
# Visitor Session Management
# -------------------------

class VisitorSessions:
    """
    Manages one TrailHubApp per visitor (browser tab / terminal client).
    Stores instances in-memory, keyed by the client id header.
    """
    def __init__(self, backend_factory: Callable[[], Any] = SupabaseBackend):
        # Key: client_id, Value: { "app": TrailHubApp, "backend": ..., "started": Task, "last_accessed": timestamp }
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self.backend_factory = backend_factory
        self.session_timeout = SESSION_TIMEOUT

    def __len__(self) -> int:
        return len(self._sessions)

    async def get_or_create(self, client_id: str) -> TrailHubApp:
        """Retrieves an existing app instance or creates and starts a new one."""
        # Cleanup old sessions occasionally
        if len(self._sessions) > 100:
            await self._cleanup_stale_sessions()

        if client_id in self._sessions:
            entry = self._sessions[client_id]
            entry["last_accessed"] = time.time()
            # A concurrent first request may still be starting this app.
            await entry["started"]
            return entry["app"]

        logger.info(f"Creating new visitor session: {client_id}")
        backend = self.backend_factory()
        app_instance = TrailHubApp.from_backend(backend)
        started = asyncio.ensure_future(app_instance.start())
        self._sessions[client_id] = {
            "app": app_instance,
            "backend": backend,
            "started": started,
            "last_accessed": time.time(),
        }
        await started
        return app_instance

    async def close_all(self) -> None:
        for client_id in list(self._sessions):
            await self._drop(client_id)

    async def _drop(self, client_id: str) -> None:
        entry = self._sessions.pop(client_id)
        entry["app"].close()
        aclose = getattr(entry["backend"], "aclose", None)
        if aclose is not None:
            await aclose()

    async def _cleanup_stale_sessions(self) -> None:
        """Removes sessions inactive for longer than session_timeout."""
        now = time.time()
        keys_to_delete = [
            k for k, v in self._sessions.items()
            if now - v["last_accessed"] > self.session_timeout
        ]
        for k in keys_to_delete:
            await self._drop(k)
        logger.info(f"Cleaned up {len(keys_to_delete)} stale sessions.")


# Global visitor registry
visitor_sessions = VisitorSessions()


async def get_visitor_app(
    x_client_id: str = Header(..., min_length=1, max_length=64, description="Visitor/session identifier"),
) -> TrailHubApp:
    return await visitor_sessions.get_or_create(x_client_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager."""
    logger.info("Initializing API Server...")
    yield
    logger.info("Shutting down API Server...")
    await visitor_sessions.close_all()


# Initialize FastAPI app
app = FastAPI(
    title="TrailHub API",
    description="Hiking trail discovery: listings, favorites, completions and profiles",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api", tags=["trailhub"])


# -------------------------
# Request/Response Models
# -------------------------

class HealthResponse(BaseModel):
    status: str
    message: str

class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=256)

class SignUpRequest(SignInRequest):
    full_name: str = Field("", max_length=100)

class TrailsResponse(BaseModel):
    status: str
    error: Optional[str] = None
    trails: List[Trail]
    count: int
    favorites: List[str]

class ToggleResponse(BaseModel):
    trail_id: str
    favorite: bool

class CompletionRequest(BaseModel):
    trail_id: str = Field(..., min_length=1)
    rating: int = Field(..., description="Whole stars, 1-5")
    review: str = Field("", max_length=2000)
    completed_at: Optional[date] = None
    difficulty: str = ""
    weather: str = ""
    companions: str = Field("", max_length=200)

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=100)
    experience_level: Optional[ExperienceLevel] = None
    favorite_activity: Optional[Activity] = None

class AvatarResponse(BaseModel):
    avatar_url: str

class PostRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)

    @field_validator('title', 'content')
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Cannot be empty")
        return v.strip()

class PlanRequest(BaseModel):
    trail_id: str = Field(..., min_length=1)


# -------------------------
# Error Mapping
# -------------------------

def _error_response(code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=code, content={"detail": str(exc)})

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)

@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return _error_response(status.HTTP_401_UNAUTHORIZED, exc)

@app.exception_handler(ToggleInProgressError)
async def toggle_in_progress_handler(request: Request, exc: ToggleInProgressError):
    return _error_response(status.HTTP_409_CONFLICT, exc)

@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error(f"Backend failure on {request.url.path}: {exc}")
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc)


# -------------------------
# API Endpoints
# -------------------------

@app.get("/", response_model=HealthResponse)
async def root():
    return {
        "status": "online",
        "message": "TrailHub API is running"
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return {
        "status": "healthy",
        "message": f"System ready. Active sessions: {len(visitor_sessions)}"
    }


# --- Auth ---

@api_router.post("/auth/sign-in")
async def sign_in(request: SignInRequest, th: TrailHubApp = Depends(get_visitor_app)):
    await th.session.sign_in(request.email, request.password)
    return th.me()


@api_router.post("/auth/sign-up")
async def sign_up(request: SignUpRequest, th: TrailHubApp = Depends(get_visitor_app)):
    identity = await th.session.sign_up(request.email, request.password, request.full_name)
    if identity is None:
        return {"signed_in": False, "message": "Check your inbox to confirm your email address."}
    return th.me()


@api_router.post("/auth/sign-out")
async def sign_out(th: TrailHubApp = Depends(get_visitor_app)):
    await th.session.sign_out()
    return th.me()


@api_router.get("/me")
async def me(th: TrailHubApp = Depends(get_visitor_app)):
    return th.me()


# --- Catalog ---

@api_router.get("/trails", response_model=TrailsResponse)
async def list_trails(
    q: str = Query("", max_length=100, description="Search text (name, country, region)"),
    difficulty: str = Query(ALL, description="beginner | intermediate | advanced | all"),
    country: str = Query(ALL, description="Country name or all"),
    refresh: bool = Query(False, description="Reload the catalog from the store"),
    th: TrailHubApp = Depends(get_visitor_app),
):
    """
    The visible subset of the catalog for the given filters.
    `refresh=true` reloads the catalog first; this is also how a failed load is retried.
    """
    if refresh:
        await th.catalog.fetch()
    trails = th.visible_trails(q, difficulty, country)
    return TrailsResponse(
        status=th.catalog.status.value,
        error=th.catalog.error,
        trails=trails,
        count=len(trails),
        favorites=sorted(th.favorites.favorites),
    )


@api_router.get("/trails/countries", response_model=List[str])
async def list_countries(th: TrailHubApp = Depends(get_visitor_app)):
    return th.catalog.countries()


@api_router.get("/trails/{trail_id}", response_model=Trail)
async def get_trail(trail_id: str, th: TrailHubApp = Depends(get_visitor_app)):
    return th.require_trail(trail_id)


@api_router.get("/destinations", response_model=List[Destination])
async def list_destinations():
    return POPULAR_DESTINATIONS


# --- Favorites ---

@api_router.get("/favorites", response_model=List[str])
async def list_favorites(th: TrailHubApp = Depends(get_visitor_app)):
    th.session.require_identity()
    return sorted(th.favorites.favorites)


@api_router.post("/favorites/{trail_id}/toggle", response_model=ToggleResponse)
async def toggle_favorite(trail_id: str, th: TrailHubApp = Depends(get_visitor_app)):
    favorite = await th.toggle_favorite(trail_id)
    return ToggleResponse(trail_id=trail_id, favorite=favorite)


# --- Completions ---

@api_router.get("/completions", response_model=List[CompletionRecord])
async def list_completions(th: TrailHubApp = Depends(get_visitor_app)):
    th.session.require_identity()
    return th.completions.completions


@api_router.post("/completions", response_model=CompletionRecord, status_code=status.HTTP_201_CREATED)
async def save_completion(request: CompletionRequest, th: TrailHubApp = Depends(get_visitor_app)):
    return await th.save_completion(
        trail_id=request.trail_id,
        rating=request.rating,
        review=request.review,
        completed_at=request.completed_at,
        difficulty_tag=request.difficulty,
        weather_tag=request.weather,
        companions=request.companions,
    )


# --- Profile & Stats ---

@api_router.get("/profile", response_model=Profile)
async def get_profile(th: TrailHubApp = Depends(get_visitor_app)):
    identity = th.session.require_identity()
    return th.profile.profile or await th.profile.load(identity)


@api_router.put("/profile", response_model=Profile)
async def update_profile(request: ProfileUpdate, th: TrailHubApp = Depends(get_visitor_app)):
    return await th.save_profile(**request.model_dump(exclude_none=True))


@api_router.post("/profile/avatar", response_model=AvatarResponse)
async def upload_avatar(
    request: Request,
    filename: str = Query(..., min_length=1, max_length=255),
    th: TrailHubApp = Depends(get_visitor_app),
):
    """Raw image bytes in the body. The returned URL is saved via PUT /api/profile."""
    data = await request.body()
    url = await th.upload_avatar(data, filename, request.headers.get("content-type"))
    return AvatarResponse(avatar_url=url)


@api_router.get("/stats")
async def get_stats(th: TrailHubApp = Depends(get_visitor_app)):
    th.session.require_identity()
    return th.stats.stats.model_dump()


# --- Community & Plans ---

@api_router.get("/community", response_model=List[CommunityPost])
async def list_posts(th: TrailHubApp = Depends(get_visitor_app)):
    return th.community.posts


@api_router.post("/community/posts", response_model=CommunityPost, status_code=status.HTTP_201_CREATED)
async def add_post(request: PostRequest, th: TrailHubApp = Depends(get_visitor_app)):
    return th.add_post(request.title, request.content)


@api_router.post("/plans", response_model=HikePlan, status_code=status.HTTP_201_CREATED)
async def plan_hike(request: PlanRequest, th: TrailHubApp = Depends(get_visitor_app)):
    return th.plan_hike(request.trail_id)


# --- State Change Stream ---

@api_router.get("/events")
async def event_stream(th: TrailHubApp = Depends(get_visitor_app)):
    """
    Stream state-change notifications for this visitor as Server-Sent Events.
    """
    queue: "asyncio.Queue[StateChange]" = asyncio.Queue()
    unsubscribe = th.subscribe_all(queue.put_nowait)

    async def stream():
        try:
            while True:
                change = await queue.get()
                yield f"data: {json.dumps(change.to_event(), default=str, ensure_ascii=False)}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(stream(), media_type="text/event-stream")


app.include_router(api_router)


if __name__ == "__main__":
    uvicorn.run(
        "trailhub.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
