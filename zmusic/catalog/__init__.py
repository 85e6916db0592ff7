"""
Catalog access for zmusic.

Components:
    CatalogClient: Async HTTP client for the Z-Music catalog API.
    CatalogLoader: Applies fetched catalogs to the player store (last fetch wins).
"""

from zmusic.catalog.client import CatalogClient, normalize_payload, parse_songs
from zmusic.catalog.loader import CatalogLoader

__all__ = [
    "CatalogClient",
    "CatalogLoader",
    "normalize_payload",
    "parse_songs",
]
