"""
REST API Routes for zmusic.

Provides the endpoints a rendering layer uses to observe and drive the player:
- /api/state: Player state snapshot
- /api/catalog: Catalog (full or filtered), refresh and retry
- /api/albums, /api/artists: Catalog grouped by album / artist
- /api/library/*: Pass-through lookups on the catalog service
- /api/player/*: Playback commands and seeking
- /api/likes/*: Liked songs
- /api/search*: Search query, history and suggestions
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Request

from zmusic.core import CatalogError
from zmusic.core.search import (
    DEFAULT_SUGGESTION_LIMIT,
    group_by_album,
    group_by_artist,
    suggest,
    trending_terms,
)

if TYPE_CHECKING:
    from zmusic.catalog.client import CatalogClient
    from zmusic.catalog.loader import CatalogLoader
    from zmusic.core.store import PlayerStore
    from zmusic.player.sync import AudioSync

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# References set during route registration
_store: PlayerStore | None = None
_sync: AudioSync | None = None
_loader: CatalogLoader | None = None
_client: CatalogClient | None = None
_suggestion_limit = DEFAULT_SUGGESTION_LIMIT


def register_api_routes(
    app,
    store: PlayerStore,
    sync: AudioSync | None = None,
    loader: CatalogLoader | None = None,
    client: CatalogClient | None = None,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        store: PlayerStore to read and drive
        sync: Optional AudioSync (seeking and playback error flag)
        loader: Optional CatalogLoader (catalog refresh and status)
        client: Optional CatalogClient (catalog service lookups)
        suggestion_limit: Maximum number of search suggestions
    """
    global _store, _sync, _loader, _client, _suggestion_limit
    _store = store
    _sync = sync
    _loader = loader
    _client = client
    _suggestion_limit = suggestion_limit
    app.include_router(router)


def _require_store() -> PlayerStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Player not initialized")
    return _store


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


def _number(body: dict[str, Any], key: str) -> float:
    value = body.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise HTTPException(status_code=400, detail=f"Missing or invalid '{key}' in request body")
    return float(value)


def _require_loader() -> CatalogLoader:
    if _loader is None:
        raise HTTPException(status_code=503, detail="Catalog loader not available")
    return _loader


def _require_client() -> CatalogClient:
    if _client is None:
        raise HTTPException(status_code=503, detail="Catalog service not available")
    return _client


def _songs_response(songs) -> dict[str, Any]:
    return {"count": len(songs), "songs": [song.to_dict() for song in songs]}


def _snapshot() -> dict[str, Any]:
    store = _require_store()
    result = store.state.to_dict()
    result["error"] = _sync.error if _sync is not None else None
    result["search_history"] = store.search_history.entries
    if _loader is not None:
        result["catalog"] = _loader.status()
    return result


# =============================================================================
# State
# =============================================================================


@router.get("/api/state")
async def get_state() -> dict[str, Any]:
    """Get the current player state."""
    return _snapshot()


@router.get("/api/catalog")
async def get_catalog(visible: bool = False) -> dict[str, Any]:
    """Get the catalog.

    Query params:
        visible: Only songs matching the current search query (default: false)
    """
    state = _require_store().state
    songs = state.visible_catalog if visible else state.catalog
    return {
        "count": len(songs),
        "query": state.search_query,
        "songs": [song.to_dict() for song in songs],
    }


@router.post("/api/catalog/refresh")
async def refresh_catalog() -> dict[str, Any]:
    """Fetch the first catalog page again from the catalog service."""
    loader = _require_loader()
    return _loader_result(loader, await loader.refresh())


@router.post("/api/catalog/retry")
async def retry_catalog() -> dict[str, Any]:
    """Repeat the last catalog request (after a failure)."""
    loader = _require_loader()
    return _loader_result(loader, await loader.retry())


def _loader_result(loader: CatalogLoader, applied: bool) -> dict[str, Any]:
    if not applied and loader.error:
        raise HTTPException(status_code=502, detail=loader.error)
    return {"applied": applied, **loader.status()}


@router.get("/api/albums")
async def get_albums() -> dict[str, Any]:
    """Get the catalog grouped by album, in first-seen order."""
    groups = group_by_album(_require_store().state.catalog)
    albums = [
        {
            "album": name,
            "artist": songs[0].artist,
            "image": songs[0].to_dict()["image"],
            "count": len(songs),
            "songs": [song.to_dict() for song in songs],
        }
        for name, songs in groups.items()
    ]
    return {"count": len(albums), "albums": albums}


@router.get("/api/artists")
async def get_artists() -> dict[str, Any]:
    """Get the catalog grouped by artist, in first-seen order."""
    groups = group_by_artist(_require_store().state.catalog)
    artists = [
        {
            "artist": name,
            "albums": list(dict.fromkeys(song.album for song in songs if song.album)),
            "count": len(songs),
            "songs": [song.to_dict() for song in songs],
        }
        for name, songs in groups.items()
    ]
    return {"count": len(artists), "artists": artists}


# =============================================================================
# Catalog service lookups
# =============================================================================


async def _call_service(call):
    try:
        return await call
    except CatalogError as e:
        logger.warning("Catalog service lookup failed: %s", e)
        raise HTTPException(status_code=502, detail=e.message)


@router.get("/api/library/health")
async def library_health() -> dict[str, Any]:
    """Health document of the catalog service."""
    return await _call_service(_require_client().health())


@router.get("/api/library/search")
async def library_search(q: str = "") -> dict[str, Any]:
    """Server-side search on the catalog service.

    Query params:
        q: Search query (blank yields no songs)
    """
    songs = await _call_service(_require_client().search_songs(q))
    return {"query": q, **_songs_response(songs)}


@router.get("/api/library/albums/{album}")
async def library_album(album: str) -> dict[str, Any]:
    """Songs of one album, from the catalog service."""
    songs = await _call_service(_require_client().songs_by_album(album))
    return {"album": album, **_songs_response(songs)}


@router.get("/api/library/songs/{song_id}")
async def library_song(song_id: int) -> dict[str, Any]:
    """A single song from the catalog service (404 if it does not exist)."""
    song = await _call_service(_require_client().get_song(song_id))
    return song.to_dict()


# =============================================================================
# Playback
# =============================================================================

_SIMPLE_COMMANDS = {
    "play": "play",
    "pause": "pause",
    "toggle": "toggle",
    "next": "next",
    "previous": "previous",
    "repeat": "toggle_repeat",
    "shuffle": "toggle_shuffle",
}


@router.post("/api/player/select")
async def select_track(request: Request) -> dict[str, Any]:
    """Select a track by catalog index and play it.

    Request body: {"index": 3}
    """
    store = _require_store()
    body = await _json_body(request)
    index = body.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise HTTPException(status_code=400, detail="Missing 'index' in request body")

    catalog = store.state.catalog
    if not 0 <= index < len(catalog):
        raise HTTPException(status_code=404, detail="Track not found")

    store.play_song(catalog[index], index)
    return _snapshot()


@router.post("/api/player/volume")
async def set_volume(request: Request) -> dict[str, Any]:
    """Set the volume.

    Request body: {"volume": 0.5}
    """
    store = _require_store()
    body = await _json_body(request)
    store.set_volume(_number(body, "volume"))
    return _snapshot()


@router.post("/api/player/seek")
async def seek(request: Request) -> dict[str, Any]:
    """Jump to a position in the current track.

    Request body: {"position": 42.5}
    """
    _require_store()
    if _sync is None:
        raise HTTPException(status_code=503, detail="Audio device not available")

    body = await _json_body(request)
    if not _sync.seek_to(_number(body, "position")):
        raise HTTPException(status_code=409, detail="Track duration not known yet")
    return _snapshot()


@router.post("/api/player/{command}")
async def player_command(command: str) -> dict[str, Any]:
    """Run a playback command (play, pause, toggle, next, previous, repeat, shuffle)."""
    store = _require_store()
    method = _SIMPLE_COMMANDS.get(command)
    if method is None:
        raise HTTPException(status_code=404, detail=f"Unknown command: {command}")

    getattr(store, method)()
    return _snapshot()


# =============================================================================
# Likes
# =============================================================================


@router.get("/api/likes")
async def get_likes() -> dict[str, Any]:
    """Get the liked songs of the current catalog."""
    state = _require_store().state
    songs = state.liked_songs()
    return {
        "ids": sorted(state.liked_ids),
        "count": len(songs),
        "songs": [song.to_dict() for song in songs],
    }


@router.post("/api/likes/{song_id}")
async def toggle_like(song_id: int) -> dict[str, Any]:
    """Like or unlike a song."""
    store = _require_store()
    state = store.toggle_like(song_id)
    return {"id": song_id, "liked": state.is_liked(song_id)}


# =============================================================================
# Search
# =============================================================================


@router.post("/api/search")
async def submit_search(request: Request) -> dict[str, Any]:
    """Apply a search query.

    Request body: {"query": "queen"}
    """
    store = _require_store()
    body = await _json_body(request)
    query = body.get("query", "")
    if not isinstance(query, str):
        raise HTTPException(status_code=400, detail="'query' must be a string")

    state = store.submit_search(query)
    return {
        "query": state.search_query,
        "count": len(state.visible_catalog),
        "songs": [song.to_dict() for song in state.visible_catalog],
        "history": store.search_history.entries,
    }


@router.delete("/api/search/history")
async def clear_search_entry(request: Request) -> dict[str, Any]:
    """Remove an entry from the search history.

    Request body: {"query": "queen"}
    """
    store = _require_store()
    body = await _json_body(request)
    query = body.get("query")
    if not isinstance(query, str) or not query:
        raise HTTPException(status_code=400, detail="Missing 'query' in request body")

    if not store.forget_search(query):
        raise HTTPException(status_code=404, detail="Search entry not found")
    return {"history": store.search_history.entries}


@router.get("/api/search/suggestions")
async def search_suggestions(q: str = "") -> dict[str, Any]:
    """Suggestions for a partial query; trending terms for an empty one.

    Query params:
        q: Partial query
    """
    store = _require_store()
    catalog = store.state.catalog
    if not q.strip():
        return {
            "query": q,
            "suggestions": [],
            "history": store.search_history.entries,
            "trending": trending_terms(catalog),
        }

    return {
        "query": q,
        "suggestions": suggest(q, catalog, store.search_history.entries, limit=_suggestion_limit),
    }
