"""
TabTint Palette Cache
In-memory store of resolved palettes, one entry per content key.
"""
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from tabtint.schemas import CacheEntry, Palette


class PaletteCache:
    """
    Palette store owned by a single coordinator.

    Entries are only removed through ``delete`` or ``clear``. Reads hand out
    copies so callers never hold the stored object.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self.stats = {'hits': 0, 'misses': 0, 'writes': 0, 'deletes': 0}

    def get(self, key: str) -> Optional[CacheEntry]:
        """Get a copy of the entry for ``key``."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats['misses'] += 1
            return None
        self.stats['hits'] += 1
        return entry.model_copy(deep=True)

    def peek(self, key: str) -> Optional[Palette]:
        """Palette copy without touching hit/miss counters."""
        entry = self._entries.get(key)
        return entry.palette.model_copy(deep=True) if entry else None

    def set(self, key: str, palette: Palette, source: Optional[str] = None) -> CacheEntry:
        """Create or overwrite the entry for ``key``."""
        entry = CacheEntry(key=key, palette=palette.model_copy(deep=True), resolved_at=time.time(), source=source)
        self._entries[key] = entry
        self.stats['writes'] += 1
        logger.debug(f"Cached palette for {key} from {source}")
        return entry.model_copy(deep=True)

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if key in self._entries:
            del self._entries[key]
            self.stats['deletes'] += 1
            return True
        return False

    def exists(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def clear(self) -> int:
        """Clear all entries, returning how many were dropped."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self.stats['hits'] + self.stats['misses']
        return {
            'stats': self.stats.copy(),
            'size': len(self._entries),
            'hit_rate': self.stats['hits'] / lookups if lookups > 0 else 0.0,
        }
