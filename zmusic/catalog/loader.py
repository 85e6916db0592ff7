"""
Catalog loader.

Fetches the catalog from the API and applies it to the player store, with
last-fetch-wins semantics:

1. Each fetch is tagged with a generation counter when it is issued
2. A completed fetch is applied only if no newer fetch has completed before it
3. A late result from an older fetch is discarded

While a fetch is pending the store keeps whatever catalog it had (possibly
empty). Failures never propagate: they keep the previous catalog, set
`error` to a user-facing message and publish a CatalogErrorEvent. `retry()`
repeats the last request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from zmusic.core import CatalogError, CoreError, NotFoundError
from zmusic.core.events import CatalogErrorEvent, CatalogLoadedEvent

if TYPE_CHECKING:
    from zmusic.catalog.client import CatalogClient
    from zmusic.core.events import EventBus
    from zmusic.core.store import PlayerStore

logger = logging.getLogger(__name__)

CONNECT_FAILURE_MESSAGE = "Cannot connect to server. Ensure backend is running."
EMPTY_CATALOG_MESSAGE = "No songs found in the database."
GENERIC_FAILURE_MESSAGE = "Failed to fetch songs from server."


class EmptyCatalogError(CatalogError):
    """The catalog service answered with no songs."""

    def __init__(self) -> None:
        super().__init__(EMPTY_CATALOG_MESSAGE)


@dataclass(frozen=True, slots=True)
class CatalogRequest:
    """Parameters of a catalog fetch (kept for `retry`)."""

    page: int | None = None
    limit: int | None = None


def describe_failure(error: Exception) -> str:
    """Map a fetch failure to the message shown to the user."""
    if isinstance(error, EmptyCatalogError):
        return EMPTY_CATALOG_MESSAGE
    if isinstance(error, NotFoundError):
        return "Server returned HTTP 404"
    if isinstance(error, CatalogError):
        if error.status is not None:
            return f"Server returned HTTP {error.status}"
        return CONNECT_FAILURE_MESSAGE
    return GENERIC_FAILURE_MESSAGE


class CatalogLoader:
    """
    Loads the catalog into a PlayerStore.

    Attributes:
        loading: True while at least one fetch is pending.
        error: User-facing message of the last failure, or None.
    """

    def __init__(
        self,
        client: CatalogClient,
        store: PlayerStore,
        *,
        event_bus: EventBus | None = None,
        page_limit: int | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._event_bus = event_bus
        self._page_limit = page_limit

        self._issued_generation = 0
        self._applied_generation = 0
        self._in_flight = 0
        self._last_request = CatalogRequest(limit=page_limit)

        self.error: str | None = None

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def generation(self) -> int:
        """Generation of the most recently issued fetch."""
        return self._issued_generation

    @property
    def applied_generation(self) -> int:
        """Generation whose result is currently in the store (0 = none yet)."""
        return self._applied_generation

    async def refresh(self, *, page: int | None = 1, limit: int | None = None) -> bool:
        """
        Fetch the catalog and apply it to the store.

        Args:
            page: Page to fetch (None for the whole catalog).
            limit: Page size (defaults to the configured page limit).

        Returns:
            True if this fetch's result was applied.
        """
        request = CatalogRequest(page=page, limit=limit if limit is not None else self._page_limit)
        self._last_request = request
        return await self._run(request)

    async def retry(self) -> bool:
        """Repeat the last request."""
        return await self._run(self._last_request)

    async def _run(self, request: CatalogRequest) -> bool:
        self._issued_generation += 1
        generation = self._issued_generation
        self._in_flight += 1

        logger.debug("Catalog fetch %d issued (page=%s, limit=%s)", generation, request.page, request.limit)

        try:
            songs = await self._client.list_songs(page=request.page, limit=request.limit)
            if not songs:
                raise EmptyCatalogError()
        except CoreError as e:
            return self._fail(generation, e)
        finally:
            self._in_flight -= 1

        if generation < self._applied_generation:
            logger.info(
                "Discarding stale catalog fetch %d (generation %d already applied)",
                generation,
                self._applied_generation,
            )
            return False

        self._applied_generation = generation
        self.error = None
        self._store.load_catalog(songs)
        logger.info("Loaded %d songs (fetch %d)", len(songs), generation)

        if self._event_bus is not None:
            self._event_bus.publish_sync(CatalogLoadedEvent(count=len(songs), generation=generation))
        return True

    def _fail(self, generation: int, error: CoreError) -> bool:
        if generation < self._applied_generation:
            logger.debug("Ignoring failure of stale catalog fetch %d: %s", generation, error)
            return False

        message = describe_failure(error)

        self.error = message
        logger.warning("Catalog fetch %d failed: %s (%s)", generation, message, error)

        if self._event_bus is not None:
            status = error.status if isinstance(error, CatalogError) else 404
            self._event_bus.publish_sync(CatalogErrorEvent(message=message, status=status))
        return False

    def status(self) -> dict[str, Any]:
        """Loader status for the rendering layer."""
        return {
            "loading": self.loading,
            "error": self.error,
            "generation": self._issued_generation,
            "applied_generation": self._applied_generation,
        }
