"""
Utility Functions Module.

This module contains helpers for asynchronous HTTP communication with the
backend, error translation, and small formatting helpers shared by the
state components.
"""

import json
import os
import uuid
from typing import Any, Dict, Optional

import httpx

from trailhub.core.errors import BackendError
from trailhub.core.logger import logger


def _error_message(resp: httpx.Response) -> Dict[str, Optional[str]]:
    """Pulls a readable message and error code out of a backend error body."""
    try:
        body = resp.json()
    except (json.JSONDecodeError, ValueError):
        return {"message": resp.text or resp.reason_phrase, "code": None}

    if not isinstance(body, dict):
        return {"message": str(body), "code": None}

    # PostgREST uses "message"/"code", GoTrue uses "msg" or "error_description",
    # Storage uses "error"/"message".
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or resp.reason_phrase
    )
    code = body.get("code") or body.get("error_code")
    return {"message": str(message), "code": str(code) if code is not None else None}


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any
) -> Any:
    """
    Performs an asynchronous HTTP request and parses the JSON response.

    Args:
        client (httpx.AsyncClient): The client to issue the request with.
        method (str): HTTP verb.
        url (str): The target URL (absolute, or relative to the client's base_url).
        **kwargs: Forwarded to `client.request` (params, json, headers, content).

    Returns:
        Any: The parsed JSON response, or None for an empty body.

    Raises:
        BackendError: If the network call fails, the backend rejects the
                      request, or the body is not valid JSON.
    """
    try:
        resp = await client.request(method, url, **kwargs)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        details = _error_message(e.response)
        logger.error(f"HTTP {e.response.status_code} error for {method} {url}: {details['message']}")
        raise BackendError(
            details["message"] or f"HTTP {e.response.status_code}",
            status_code=e.response.status_code,
            code=details["code"],
        )
    except httpx.RequestError as e:
        logger.error(f"Network error for {method} {url}: {e}")
        raise BackendError(f"Network error: {e}")

    if not resp.content:
        return None
    try:
        return resp.json()
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON from {method} {url}")
        raise BackendError(f"Invalid JSON response: {e}")


def generate_avatar_path(filename: str) -> str:
    """
    Builds a unique object path for an uploaded avatar.

    The random part is a full uuid4, so collisions are negligible. The
    original extension is kept so the storage backend serves the right
    content type.
    """
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "png"
    return f"avatars/{uuid.uuid4().hex}.{ext}"


def display_name_for(full_name: str, email: str) -> str:
    """The name shown in the header: full name, else email local part, else 'User'."""
    if full_name and full_name.strip():
        return full_name.strip()
    if email:
        return email.split("@")[0]
    return "User"
