"""
Unit tests for the palette cache.
"""
from tabtint.schemas import RawColor
from tabtint.services.cache import PaletteCache
from tabtint.services.colors.adjuster import DEFAULT_PALETTE


class TestPaletteCache:
    """Test in-memory palette storage and statistics"""

    def test_set_and_get(self):
        cache = PaletteCache()
        cache.set("tab-1", DEFAULT_PALETTE, source="theme_hint:theme-color")

        entry = cache.get("tab-1")
        assert entry.key == "tab-1"
        assert entry.palette == DEFAULT_PALETTE
        assert entry.source == "theme_hint:theme-color"
        assert entry.resolved_at > 0

    def test_get_returns_copy(self):
        cache = PaletteCache()
        cache.set("tab-1", DEFAULT_PALETTE)
        assert cache.get("tab-1").palette is not cache.get("tab-1").palette
        assert cache.peek("tab-1") is not DEFAULT_PALETTE

    def test_overwrite(self):
        cache = PaletteCache()
        cache.set("tab-1", DEFAULT_PALETTE)
        other = DEFAULT_PALETTE.model_copy(update={"accent": RawColor(r=1, g=2, b=3)})
        cache.set("tab-1", other)
        assert cache.peek("tab-1").accent == RawColor(r=1, g=2, b=3)
        assert len(cache) == 1

    def test_delete_and_clear(self):
        cache = PaletteCache()
        cache.set("a", DEFAULT_PALETTE)
        cache.set("b", DEFAULT_PALETTE)

        assert cache.delete("a")
        assert not cache.delete("a")
        assert not cache.exists("a")
        assert cache.keys() == ["b"]
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_stats(self):
        cache = PaletteCache()
        assert cache.get("missing") is None
        cache.set("a", DEFAULT_PALETTE)
        cache.get("a")
        cache.peek("a")

        stats = cache.get_cache_stats()
        assert stats['stats']['hits'] == 1
        assert stats['stats']['misses'] == 1
        assert stats['stats']['writes'] == 1
        assert stats['hit_rate'] == 0.5
        assert stats['size'] == 1
