"""Shared fixtures: in-memory stand-ins for the auth, store and storage collaborators."""

import asyncio
import inspect
import itertools
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from trailhub.backend.base import AuthBackend, StorageBackend, StoreBackend
from trailhub.core.errors import BackendError
from trailhub.core.models import AuthEvent, AuthSession, Identity
from trailhub.orchestration.app import TrailHubApp
from trailhub.state.observable import IdentityScope

USER = Identity(id="user-1", name="Minji", email="minji@example.com")
OTHER_USER = Identity(id="user-2", name="jisoo", email="jisoo@example.com")
PASSWORD = "hunter22"

TRAIL_ROWS = [
    {
        "id": 1, "name": "Fuji Yoshida", "country": "Japan", "location": "Yamanashi",
        "difficulty": "beginner", "distance_km": 14.0, "duration_hours": 7,
        "elevation_gain": 1450, "description": "Classic route", "image_url": "/fuji.png",
        "price_krw": None, "created_at": "2024-03-01T00:00:00+00:00",
    },
    {
        "id": 2, "name": "Jeju Olle", "country": "Korea", "location": "Jeju",
        "difficulty": "intermediate", "distance_km": 20.5, "duration_hours": 6,
        "elevation_gain": 300, "description": "Coastal walk", "image_url": "/jeju.png",
        "price_krw": 15000, "created_at": "2024-02-01T00:00:00+00:00",
    },
    {
        "id": 3, "name": "Annapurna Base Camp", "country": "Nepal", "location": "Gandaki",
        "difficulty": "advanced", "distance_km": 115.0, "duration_hours": 80,
        "elevation_gain": 4130, "description": "Himalaya trek", "image_url": None,
        "price_krw": 1200000, "created_at": "2024-01-01T00:00:00+00:00",
    },
]


class FakeAuth(AuthBackend):

    def __init__(self, users: Optional[Dict[str, Tuple[str, Identity]]] = None):
        self.users = users if users is not None else {USER.email: (PASSWORD, USER)}
        self.session: Optional[AuthSession] = None
        self.fail_lookup = False
        self.handlers: List[Any] = []

    def start_signed_in(self, identity: Identity = USER) -> None:
        self.session = AuthSession(access_token=f"token-{identity.id}", identity=identity)

    async def get_session(self) -> Optional[AuthSession]:
        if self.fail_lookup:
            raise BackendError("auth service unreachable")
        return self.session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        entry = self.users.get(email)
        if entry is None or entry[0] != password:
            raise BackendError("Invalid login credentials", status_code=400)
        self.session = AuthSession(access_token=f"token-{entry[1].id}", identity=entry[1])
        await self._emit(AuthEvent.SIGNED_IN, self.session)
        return self.session

    async def sign_up(self, email: str, password: str, full_name: str = "") -> Optional[AuthSession]:
        identity = Identity(id=f"user-{len(self.users) + 1}", name=full_name or email.split("@")[0], email=email)
        self.users[email] = (password, identity)
        return await self.sign_in(email, password)

    async def sign_out(self) -> None:
        self.session = None
        await self._emit(AuthEvent.SIGNED_OUT, None)

    def subscribe(self, handler):
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    async def _emit(self, event, session) -> None:
        for handler in list(self.handlers):
            result = handler(event, session)
            if inspect.isawaitable(result):
                await result


class FakeStore(StoreBackend):
    """
    Tables as lists of dicts. `fail_on` holds (operation, table) pairs that
    raise BackendError; `hold(operation)` parks calls until the returned event is set.
    """

    def __init__(self, trails: Optional[List[Dict[str, Any]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "hiking_courses": [dict(r) for r in (TRAIL_ROWS if trails is None else trails)],
            "user_favorites": [],
            "course_completions": [],
            "profiles": [],
        }
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: Set[Tuple[str, str]] = set()
        self._gates: Dict[str, asyncio.Event] = {}
        self._ids = itertools.count(100)

    def hold(self, operation: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[operation] = gate
        return gate

    async def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        if (operation, table) in self.fail_on:
            raise BackendError(f"{operation} on {table} rejected", status_code=500)

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(str(row.get(k)) == str(v) for k, v in (filters or {}).items())

    async def select(self, table, filters=None, columns="*", order=None):
        await self._enter("select", table)
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters)]
        if "hiking_courses" in columns and table == "course_completions":
            for row in rows:
                row["hiking_courses"] = next(
                    (dict(t) for t in self.tables["hiking_courses"] if str(t["id"]) == str(row["course_id"])),
                    None,
                )
        if order:
            column, descending = order
            rows.sort(key=lambda r: r.get(column) or "", reverse=descending)
        return rows

    async def insert(self, table, record):
        await self._enter("insert", table)
        if table == "user_favorites" and any(self._matches(r, record) for r in self.tables[table]):
            raise BackendError("duplicate key value violates unique constraint", status_code=409, code="23505")
        row = {"id": next(self._ids), **record}
        self.tables[table].append(row)
        return dict(row)

    async def update(self, table, filters, fields):
        await self._enter("update", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(fields)
                updated.append(dict(row))
        return updated

    async def upsert(self, table, record, on_conflict="id"):
        await self._enter("upsert", table)
        for row in self.tables[table]:
            if str(row.get(on_conflict)) == str(record.get(on_conflict)):
                row.update(record)
                return dict(row)
        self.tables[table].append(dict(record))
        return dict(record)

    async def delete(self, table, filters):
        await self._enter("delete", table)
        self.tables[table] = [r for r in self.tables[table] if not self._matches(r, filters)]

    async def rpc(self, function, params):
        await self._enter("rpc", function)
        user_id = params["user_uuid"]
        done = [r for r in self.tables["course_completions"] if r["user_id"] == user_id]
        distance = sum(
            t["distance_km"] for t in self.tables["hiking_courses"]
            if any(str(t["id"]) == str(c["course_id"]) for c in done)
        )
        favorites = [r for r in self.tables["user_favorites"] if r["user_id"] == user_id]
        return [{
            "completed_courses": len(done),
            "total_distance": str(distance),
            "favorite_courses": len(favorites),
        }]


class FakeStorage(StorageBackend):

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail = False

    async def upload(self, bucket, path, data, content_type="application/octet-stream"):
        if self.fail:
            raise BackendError("storage quota exceeded", status_code=413)
        self.objects[f"{bucket}/{path}"] = data

    def get_public_url(self, bucket, path):
        return f"https://cdn.example.com/storage/v1/object/public/{bucket}/{path}"


class FakeBackend:
    """Same shape as SupabaseBackend: `auth`, `store`, `storage`, `aclose()`."""

    def __init__(self):
        self.auth = FakeAuth()
        self.store = FakeStore()
        self.storage = FakeStorage()
        self.closed = False

    async def aclose(self):
        self.closed = True


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def scope():
    return IdentityScope()


@pytest.fixture
def app(auth, store, storage):
    return TrailHubApp(auth, store, storage)
