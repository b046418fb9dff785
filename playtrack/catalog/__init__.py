"""Training content catalog (read-only to the tracking core)."""

from .models import (
    Audience,
    ContentItem,
    extract_media_id,
    parse_duration_label,
)
from .provider import CatalogProvider, HttpCatalogProvider, InMemoryCatalogProvider


__all__ = [
    "Audience",
    "CatalogProvider",
    "ContentItem",
    "HttpCatalogProvider",
    "InMemoryCatalogProvider",
    "extract_media_id",
    "parse_duration_label",
]
