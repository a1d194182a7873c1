"""
http_client.py — Shared async HTTP access for upstream feeds.

One `httpx.AsyncClient` is created per process (FastAPI lifespan) and
handed to every adapter. `fetch_json` wraps a single GET with:

    • a hard wall-clock bound (asyncio.wait_for) on top of httpx's
      per-phase timeouts
    • status checking (non-2xx → FeedError)
    • JSON decoding (invalid body → FeedError)

There are no retries here. A failed call is a failed contribution for
this cycle; the next cache rebuild tries again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import FeedError

logger = logging.getLogger(__name__)


def create_client(timeout: Optional[float] = None, **kwargs: Any) -> httpx.AsyncClient:
    """Build the process-wide client with default headers and timeout."""
    headers = {
        "Accept": "application/json",
        "User-Agent": settings.HTTP_USER_AGENT,
    }
    headers.update(kwargs.pop("headers", {}))
    return httpx.AsyncClient(
        timeout=timeout or settings.FEED_TIMEOUT_SECONDS,
        headers=headers,
        follow_redirects=True,
        **kwargs,
    )


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    feed: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """
    GET `url` and decode the JSON body.

    Raises
    ------
    FeedError
        On timeout, transport error, non-2xx status or undecodable body.
    """
    limit = timeout or settings.FEED_TIMEOUT_SECONDS
    try:
        response = await asyncio.wait_for(
            client.get(url, params=params, timeout=limit),
            timeout=limit,
        )
        response.raise_for_status()
    except asyncio.TimeoutError:
        raise FeedError(feed, f"timed out after {limit:.0f}s", url=url)
    except httpx.HTTPStatusError as e:
        raise FeedError(
            feed, f"HTTP {e.response.status_code}",
            url=url, status_code=e.response.status_code,
        )
    except httpx.HTTPError as e:
        raise FeedError(feed, f"{type(e).__name__}: {e}", url=url)

    try:
        return response.json()
    except ValueError as e:
        raise FeedError(feed, f"invalid JSON: {e}", url=url)
