"""Board metadata cache: registry resolver, snapshot models and the cache store."""

from stephie_mcp.metadata.models import BoardDescriptor, CacheSnapshot
from stephie_mcp.metadata.resolver import SchemaResolver
from stephie_mcp.metadata.store import (
    FALLBACK_COLUMNS,
    MetadataCache,
    get_cache,
)

__all__ = [
    "BoardDescriptor",
    "CacheSnapshot",
    "FALLBACK_COLUMNS",
    "MetadataCache",
    "SchemaResolver",
    "get_cache",
]
