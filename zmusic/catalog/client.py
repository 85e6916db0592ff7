"""
HTTP client for the Z-Music catalog API.

Endpoints consumed:
- GET /api/songs?page=&limit=      all songs (optionally paginated)
- GET /api/songs/search/{query}    server-side search
- GET /api/songs/{id}              a single song
- GET /api/songs/album/{name}      songs of one album
- GET /health                      service health

Responses come either as a bare list or wrapped (``{"data": [...]}``, and a
few older shapes); `normalize_payload` accepts all of them. Errors come back
as ``{"status": "fail"|"error", "message": ...}`` with a 4xx/5xx status.

Retry policy:
- 4xx responses are final (no retry)
- 5xx responses and transport errors are retried `retries` times with a
  linear backoff of 0.5s, 1.0s, ...
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any
from urllib.parse import quote

import httpx

from zmusic.core import CatalogError, NotFoundError
from zmusic.core.song import Song, resolve_locator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 2
RETRY_BACKOFF_SECONDS = 0.5

CONNECT_ERROR_MESSAGE = "Failed to connect to the server. Please ensure the backend is running."

# Wrapper keys seen in catalog responses, in lookup order
_WRAPPER_KEYS = ("data", "songs", "result")


def normalize_payload(payload: Any) -> Any:
    """Unwrap a catalog response body."""
    if payload is None or isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            if payload.get(key) is not None:
                return payload[key]
    return payload


def parse_songs(payload: Any, base_url: str) -> list[Song]:
    """
    Build songs from a (normalized) response body.

    Records that cannot be parsed are skipped; duplicates (same id) keep the
    first occurrence. Artwork locators are resolved against `base_url`.
    """
    records = normalize_payload(payload)
    if records is None:
        return []
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list):
        raise CatalogError(f"Unexpected catalog payload: {type(records).__name__}")

    songs: list[Song] = []
    seen: set[int] = set()
    for record in records:
        if not isinstance(record, dict):
            logger.debug("Skipping non-object catalog record: %r", record)
            continue
        try:
            song = Song.from_dict(record)
        except (CatalogError, TypeError, ValueError, OverflowError) as e:
            logger.warning("Skipping catalog record: %s", e)
            continue
        if song.id in seen:
            continue
        seen.add(song.id)
        if song.image:
            song = replace(song, image=resolve_locator(song.image, base_url))
        songs.append(song)
    return songs


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"API Error: {response.status_code} {response.reason_phrase}"


class CatalogClient:
    """
    Async client for the catalog API.

    Usage:
        async with CatalogClient("http://localhost:5000") as client:
            songs = await client.list_songs(page=1, limit=20)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff: float = RETRY_BACKOFF_SECONDS,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API base URL (e.g. ``http://localhost:5000``).
            timeout: Per-request timeout in seconds.
            retries: Retries for 5xx/transport failures.
            transport: Optional httpx transport (tests use MockTransport).
            backoff: Base backoff between retries in seconds.
        """
        if retries < 0:
            raise ValueError("retries must be non-negative")

        self.base_url = base_url.rstrip("/")
        self._retries = retries
        self._backoff = backoff
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a JSON document with the retry policy applied.

        Raises:
            NotFoundError: On 404.
            CatalogError: On any other failure once retries are exhausted.
        """
        attempts = self._retries + 1
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = await self._client.get(path, params=params)
            except httpx.HTTPError as e:
                if not last:
                    logger.warning(
                        "Retry %d/%d for %s after error: %s", attempt + 1, self._retries, path, e
                    )
                    await asyncio.sleep(self._backoff * (attempt + 1))
                    continue
                logger.error("Fetch error (%s): %s", path, e)
                raise CatalogError(CONNECT_ERROR_MESSAGE) from e

            if response.status_code == 404:
                raise NotFoundError(_error_message(response))

            if 400 <= response.status_code < 500:
                raise CatalogError(_error_message(response), response.status_code)

            if response.status_code >= 500:
                if not last:
                    logger.warning(
                        "Retry %d/%d for %s after HTTP %d",
                        attempt + 1,
                        self._retries,
                        path,
                        response.status_code,
                    )
                    await asyncio.sleep(self._backoff * (attempt + 1))
                    continue
                raise CatalogError(_error_message(response), response.status_code)

            try:
                return response.json()
            except ValueError:
                logger.warning("Non-JSON response from %s", response.url)
                return None

        # Unreachable: the loop either returns or raises on the last attempt
        raise CatalogError(CONNECT_ERROR_MESSAGE)

    async def list_songs(self, *, page: int | None = None, limit: int | None = None) -> list[Song]:
        """Fetch the catalog (one page of it when `page`/`limit` are given)."""
        params: dict[str, Any] = {}
        if page is not None:
            params["page"] = page
        if limit is not None:
            params["limit"] = limit
        payload = await self._get("/api/songs", params or None)
        return parse_songs(payload, self.base_url)

    async def search_songs(self, query: str) -> list[Song]:
        """Server-side search. A blank query or no match yields an empty list."""
        if not query or not query.strip():
            return []
        try:
            payload = await self._get(f"/api/songs/search/{quote(query.strip(), safe='')}")
        except NotFoundError:
            return []
        return parse_songs(payload, self.base_url)

    async def get_song(self, song_id: int) -> Song:
        """
        Fetch a single song.

        Raises:
            NotFoundError: If the song does not exist.
        """
        payload = await self._get(f"/api/songs/{int(song_id)}")
        songs = parse_songs(payload, self.base_url)
        if not songs:
            raise NotFoundError(f"Song {song_id} not found")
        return songs[0]

    async def songs_by_album(self, album: str) -> list[Song]:
        """Songs of one album (empty for a blank name or unknown album)."""
        if not album or not album.strip():
            return []
        try:
            payload = await self._get(f"/api/songs/album/{quote(album.strip(), safe='')}")
        except NotFoundError:
            return []
        return parse_songs(payload, self.base_url)

    async def health(self) -> dict[str, Any]:
        """Fetch the service health document."""
        payload = await self._get("/health")
        return payload if isinstance(payload, dict) else {}
