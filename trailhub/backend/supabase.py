"""
Supabase Backend Module.

HTTP implementation of the backend collaborators against a Supabase-compatible
REST surface:
- GoTrue (`/auth/v1`) for authentication,
- PostgREST (`/rest/v1`) for tables and RPCs,
- Storage (`/storage/v1`) for avatar objects.

All three share one `httpx.AsyncClient`. Requests carry the project's anon key
as `apikey`; table and storage calls authenticate with the signed-in user's
access token when there is one (refreshed first once it has expired), so
row-level security applies.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from trailhub.backend.base import (
    AuthBackend,
    AuthHandler,
    Filters,
    Order,
    StorageBackend,
    StoreBackend,
    Unsubscribe,
)
from trailhub.config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, SUPABASE_ANON_KEY, SUPABASE_URL
from trailhub.core.logger import logger
from trailhub.core.models import AuthEvent, AuthSession, Identity
from trailhub.core.utils import request_json

# Refresh a little before the token actually expires.
EXPIRY_MARGIN_SECONDS = 30


class SupabaseAuth(AuthBackend):
    """
    GoTrue client holding the current session in memory.

    Args:
        http (httpx.AsyncClient): Shared client, base_url set to the project URL.
        anon_key (str): Project anon key.
        refresh_token (Optional[str]): A previously persisted refresh token. When
            given, the first `get_session()` exchanges it for a fresh session.
    """

    def __init__(self, http: httpx.AsyncClient, anon_key: str, refresh_token: Optional[str] = None):
        self.http = http
        self.anon_key = anon_key
        self._session: Optional[AuthSession] = None
        self._pending_refresh_token = refresh_token
        self._handlers: List[AuthHandler] = []
        self._refresh_lock = asyncio.Lock()

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer or self.anon_key}",
        }

    @staticmethod
    def _session_from_payload(payload: Dict[str, Any]) -> AuthSession:
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = int(time.time()) + int(payload["expires_in"])
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            identity=Identity.from_user(payload["user"]),
        )

    def _is_expired(self, session: AuthSession) -> bool:
        if session.expires_at is None:
            return False
        return session.expires_at - EXPIRY_MARGIN_SECONDS <= time.time()

    async def _refresh(self, refresh_token: str) -> AuthSession:
        payload = await request_json(
            self.http, "POST", "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            headers=self._headers(),
        )
        return self._session_from_payload(payload)

    async def get_session(self) -> Optional[AuthSession]:
        if self._session is not None and not self._is_expired(self._session):
            return self._session

        refresh_token = (
            self._session.refresh_token if self._session is not None else self._pending_refresh_token
        )
        if not refresh_token:
            return None

        self._pending_refresh_token = None
        self._session = await self._refresh(refresh_token)
        logger.info(f"Session refreshed for user {self._session.identity.id}")
        return self._session

    async def ensure_fresh_token(self) -> Optional[str]:
        """Access token for table and storage calls, refreshed first if it has expired."""
        async with self._refresh_lock:
            session = self._session
            if session is not None and self._is_expired(session) and session.refresh_token:
                self._session = await self._refresh(session.refresh_token)
                logger.info(f"Access token refreshed for user {self._session.identity.id}")
        return self.access_token

    async def sign_in(self, email: str, password: str) -> AuthSession:
        payload = await request_json(
            self.http, "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        self._session = self._session_from_payload(payload)
        logger.info(f"Signed in user {self._session.identity.id}")
        await self._emit(AuthEvent.SIGNED_IN, self._session)
        return self._session

    async def sign_up(self, email: str, password: str, full_name: str = "") -> Optional[AuthSession]:
        payload = await request_json(
            self.http, "POST", "/auth/v1/signup",
            json={"email": email, "password": password, "data": {"full_name": full_name}},
            headers=self._headers(),
        )
        # With email confirmation enabled GoTrue returns only the user.
        if not payload or "access_token" not in payload:
            logger.info(f"Signed up {email}; waiting for email confirmation")
            return None

        self._session = self._session_from_payload(payload)
        await self._emit(AuthEvent.SIGNED_IN, self._session)
        return self._session

    async def sign_out(self) -> None:
        session, self._session = self._session, None
        self._pending_refresh_token = None
        try:
            if session is not None:
                await request_json(
                    self.http, "POST", "/auth/v1/logout",
                    headers=self._headers(session.access_token),
                )
        finally:
            # The local session is gone even if the server could not revoke it.
            await self._emit(AuthEvent.SIGNED_OUT, None)

    def subscribe(self, handler: AuthHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for handler in list(self._handlers):
            result = handler(event, session)
            if inspect.isawaitable(result):
                await result


class SupabaseStore(StoreBackend):
    """PostgREST client. Filters are translated to `column=eq.value` params."""

    def __init__(self, http: httpx.AsyncClient, anon_key: str, token_provider: Callable[[], Awaitable[Optional[str]]]):
        self.http = http
        self.anon_key = anon_key
        self.token_provider = token_provider

    async def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        token = await self.token_provider() or self.anon_key
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _filter_params(filters: Optional[Filters]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for column, value in (filters or {}).items():
            if isinstance(value, bool):
                value = str(value).lower()
            params[column] = f"eq.{value}"
        return params

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        columns: str = "*",
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]:
        params = self._filter_params(filters)
        params["select"] = "".join(columns.split())
        if order:
            column, descending = order
            params["order"] = f"{column}.{'desc' if descending else 'asc'}"
        rows = await request_json(self.http, "GET", f"/rest/v1/{table}", params=params, headers=await self._headers())
        return rows or []

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        rows = await request_json(
            self.http, "POST", f"/rest/v1/{table}",
            json=record,
            headers=await self._headers("return=representation"),
        )
        return rows[0] if rows else {}

    async def update(self, table: str, filters: Filters, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Refusing to update without a filter.")
        rows = await request_json(
            self.http, "PATCH", f"/rest/v1/{table}",
            params=self._filter_params(filters),
            json=fields,
            headers=await self._headers("return=representation"),
        )
        return rows or []

    async def upsert(self, table: str, record: Dict[str, Any], on_conflict: str = "id") -> Dict[str, Any]:
        rows = await request_json(
            self.http, "POST", f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=record,
            headers=await self._headers("resolution=merge-duplicates,return=representation"),
        )
        return rows[0] if rows else {}

    async def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise ValueError("Refusing to delete without a filter.")
        await request_json(
            self.http, "DELETE", f"/rest/v1/{table}",
            params=self._filter_params(filters),
            headers=await self._headers(),
        )

    async def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        return await request_json(
            self.http, "POST", f"/rest/v1/rpc/{function}",
            json=params,
            headers=await self._headers(),
        )


class SupabaseStorage(StorageBackend):
    """Storage API client."""

    def __init__(self, http: httpx.AsyncClient, base_url: str, anon_key: str,
                 token_provider: Callable[[], Awaitable[Optional[str]]]):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.token_provider = token_provider

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        token = await self.token_provider() or self.anon_key
        await request_json(
            self.http, "POST", f"/storage/v1/object/{bucket}/{path}",
            content=data,
            headers={
                "apikey": self.anon_key,
                "Authorization": f"Bearer {token}",
                "Content-Type": content_type,
                "x-upsert": "false",
            },
        )

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"


class SupabaseBackend:
    """
    Bundles the three collaborators over one HTTP client.

    Attributes:
        auth (SupabaseAuth): Authentication collaborator.
        store (SupabaseStore): Table/RPC collaborator.
        storage (SupabaseStorage): Object storage collaborator.
    """

    def __init__(
        self,
        url: str = SUPABASE_URL,
        anon_key: Optional[str] = SUPABASE_ANON_KEY,
        refresh_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        if not anon_key:
            raise ValueError("SUPABASE_ANON_KEY is not set.")

        self.http = httpx.AsyncClient(
            base_url=url,
            timeout=timeout,
            headers={"User-Agent": DEFAULT_USER_AGENT},
            transport=transport,
        )
        self.auth = SupabaseAuth(self.http, anon_key, refresh_token=refresh_token)
        self.store = SupabaseStore(self.http, anon_key, self.auth.ensure_fresh_token)
        self.storage = SupabaseStorage(self.http, url, anon_key, self.auth.ensure_fresh_token)
        logger.info(f"Supabase backend initialized for {url}")

    async def aclose(self) -> None:
        await self.http.aclose()
