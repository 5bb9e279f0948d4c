"""
TabTint Palette Coordinator
Caches resolved palettes per content key, debounces change notifications and
keeps at most one resolution in flight per key.

Per-key lifecycle::

    IDLE -> PENDING (notification, debounce timer armed)
         -> RESOLVING (timer fired or cache miss on resolve)
         -> RESOLVED (palette cached) -> PENDING on the next notification

All methods must be called from the event loop thread.
"""
import asyncio
import fnmatch
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from loguru import logger

from tabtint.config import Config
from tabtint.schemas import Palette, Settings
from tabtint.services.cache import PaletteCache
from tabtint.services.colors.adjuster import DEFAULT_PALETTE, build_palette
from tabtint.services.colors.validity import check_color
from tabtint.services.observability import get_metrics_collector, performance_monitor
from tabtint.services.probe import ContentSnapshot, SourceProbe
from tabtint.services.reliability import ExtractionError, InvalidColor, SourceUnavailable
from tabtint.utils.ids import generate_cycle_id
from tabtint.utils.logging import get_logger

SnapshotProvider = Callable[[str], Awaitable[Optional[ContentSnapshot]]]

_GLOB_CHARS = set("*?[")


class KeyState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


@dataclass
class _KeySlot:
    """Mutable per-key bookkeeping, private to the coordinator."""
    state: KeyState = KeyState.IDLE
    timer: Optional[asyncio.TimerHandle] = None
    task: Optional[asyncio.Task] = None
    cycle: int = 0
    generation: int = 0
    rearm: bool = False
    snapshot: Optional[ContentSnapshot] = None
    # Resolves with the palette of the current pending/in-flight work,
    # or None when that work was discarded and callers should look again
    settled: Optional[asyncio.Future] = None


def matches_pattern(key: str, pattern: str) -> bool:
    """
    Glob patterns match the whole key. Plain patterns match when either string
    contains the other, so `example.com` excludes `https://example.com/a` and
    a pattern written as a full URL still excludes its bare host key.
    """
    if _GLOB_CHARS & set(pattern):
        return fnmatch.fnmatchcase(key, pattern)
    return pattern in key or (bool(key) and key in pattern)


class PaletteCoordinator:
    """Orchestrates probe -> validity filter -> adjuster with caching and debounce."""

    def __init__(self,
                 settings: Optional[Settings] = None,
                 probe: Optional[SourceProbe] = None,
                 snapshot_provider: Optional[SnapshotProvider] = None,
                 is_dark_mode: Optional[Callable[[], bool]] = None,
                 cfg: Optional[Config] = None):
        self._settings = settings if settings is not None else Settings.from_config(cfg)
        self.probe = probe or SourceProbe(cfg=cfg)
        self.snapshot_provider = snapshot_provider
        self.is_dark_mode = is_dark_mode
        self.cache = PaletteCache()
        self.metrics = get_metrics_collector()
        self.log = get_logger()
        self._slots: Dict[str, _KeySlot] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Host interface
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    def configure(self, settings: Settings) -> None:
        """
        Replace the active settings wholesale.

        Cached palettes are dropped when the remap targets change.

        Raises:
            TypeError: If ``settings`` is not a Settings snapshot
        """
        if not isinstance(settings, Settings):
            raise TypeError(f"configure() expects Settings, got {type(settings).__name__}")

        previous = self._settings
        self._settings = settings

        dropped = 0
        if not previous.same_adjustment(settings):
            dropped = self._drop_all_entries()

        self.log.info("Coordinator configured", extra={
            'enabled': settings.enabled,
            'saturation': settings.saturation_target,
            'lightness': settings.lightness_target,
            'debounce_ms': settings.debounce_ms,
            'adjust_mode': settings.adjust_mode,
            'dropped_entries': dropped,
        })

    def notify_changed(self, key: str) -> None:
        """Signal that the content behind ``key`` may have changed. Never blocks."""
        self.metrics.increment("notifications_received")
        if not self.is_active(key):
            return

        slot = self._slot(key)
        # The content changed, so the next cycle must fetch a fresh snapshot
        slot.snapshot = None

        if slot.state == KeyState.RESOLVING:
            if slot.rearm:
                self.metrics.increment("notifications_coalesced")
            slot.rearm = True
            logger.debug(f"Notification for {key} deferred until in-flight resolution settles")
            return

        if slot.timer is not None:
            slot.timer.cancel()
            slot.timer = None
            self.metrics.increment("notifications_coalesced")

        self._arm(key, slot)

    async def resolve(self, key: str, snapshot: Optional[ContentSnapshot] = None) -> Optional[Palette]:
        """
        Palette for ``key``.

        Returns None only when the key is excluded or theming is disabled;
        otherwise a derived palette, or the default palette when nothing
        usable could be extracted.
        """
        if not self.is_active(key):
            return None

        slot = self._slot(key)
        if snapshot is not None:
            slot.snapshot = snapshot

        while True:
            if slot.state in (KeyState.PENDING, KeyState.RESOLVING):
                waiter = self._ensure_settled(slot)
                outcome = await asyncio.shield(waiter)
                if outcome is not None:
                    return outcome.model_copy(deep=True)
                if not self.is_active(key):
                    return None
                slot = self._slot(key)
                continue

            entry = self.cache.get(key)
            if entry is not None:
                self.metrics.increment("cache_hits")
                slot.state = KeyState.RESOLVED
                return entry.palette

            self.metrics.increment("cache_misses")
            self._start_cycle(key, slot)

    def invalidate(self, key: str) -> None:
        """Forget the cached palette for ``key``; in-flight work for it is discarded."""
        removed = self.cache.delete(key)
        slot = self._slots.get(key)
        if slot is not None:
            slot.generation += 1
            if slot.state == KeyState.RESOLVED:
                slot.state = KeyState.IDLE
            self._discard_idle(key)

        self.log.info("Invalidated palette", extra={'key': key, 'removed': removed})

    def clear(self) -> None:
        """Drop every cached palette and pending debounce timer."""
        dropped = self._drop_all_entries()
        for slot in self._slots.values():
            slot.rearm = False
            if slot.timer is not None:
                slot.timer.cancel()
                slot.timer = None
            if slot.state == KeyState.PENDING:
                slot.state = KeyState.IDLE
                self._settle(slot, None)
        for key in list(self._slots):
            self._discard_idle(key)

        self.log.info("Cleared palette cache", extra={'dropped_entries': dropped})

    async def aclose(self) -> None:
        """Tear down: cancel timers, wait for in-flight work and drop all state."""
        self._closed = True
        self.clear()
        tasks = [slot.task for slot in self._slots.values() if slot.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for slot in self._slots.values():
            self._settle(slot, None)
        self._slots.clear()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def state(self, key: str) -> KeyState:
        slot = self._slots.get(key)
        return slot.state if slot is not None else KeyState.IDLE

    def cached(self, key: str) -> Optional[Palette]:
        """Copy of the cached palette, without resolving."""
        return self.cache.peek(key)

    def cache_stats(self):
        return self.cache.get_cache_stats()

    def is_excluded(self, key: str) -> bool:
        return any(matches_pattern(key, pattern) for pattern in self._settings.excluded_keys)

    def is_active(self, key: str) -> bool:
        """Whether ``key`` should be themed under the current settings."""
        settings = self._settings
        if self._closed or not settings.enabled:
            return False
        if settings.dark_mode_only and self.is_dark_mode is not None and not self.is_dark_mode():
            return False
        return not self.is_excluded(key)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _slot(self, key: str) -> _KeySlot:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _KeySlot()
        return slot

    def _ensure_settled(self, slot: _KeySlot) -> asyncio.Future:
        if slot.settled is None or slot.settled.done():
            slot.settled = asyncio.get_running_loop().create_future()
        return slot.settled

    def _settle(self, slot: _KeySlot, outcome: Optional[Palette]) -> None:
        waiter, slot.settled = slot.settled, None
        if waiter is not None and not waiter.done():
            waiter.set_result(outcome)

    def _drop_all_entries(self) -> int:
        for slot in self._slots.values():
            slot.generation += 1
            if slot.state == KeyState.RESOLVED:
                slot.state = KeyState.IDLE
        return self.cache.clear()

    def _discard_idle(self, key: str) -> None:
        """Forget a key that has no cached palette and no scheduled or running work."""
        slot = self._slots.get(key)
        if slot is None or slot.state != KeyState.IDLE or slot.timer is not None or slot.task is not None:
            return
        self._settle(slot, None)
        del self._slots[key]

    def _arm(self, key: str, slot: _KeySlot) -> None:
        loop = asyncio.get_running_loop()
        slot.state = KeyState.PENDING
        self._ensure_settled(slot)
        slot.timer = loop.call_later(self._settings.debounce_ms / 1000.0, self._on_timer, key)

    def _on_timer(self, key: str) -> None:
        slot = self._slots.get(key)
        if slot is None:
            return
        slot.timer = None

        if not self.is_active(key):
            slot.state = KeyState.RESOLVED if self.cache.exists(key) else KeyState.IDLE
            self._settle(slot, None)
            return

        self._start_cycle(key, slot)

    def _start_cycle(self, key: str, slot: _KeySlot) -> None:
        slot.cycle += 1
        slot.state = KeyState.RESOLVING
        self._ensure_settled(slot)
        self.metrics.increment("resolutions_started")
        slot.task = asyncio.get_running_loop().create_task(
            self._run_cycle(key, slot.cycle, slot.generation, self._settings, slot.snapshot)
        )

    async def _run_cycle(self, key: str, cycle: int, generation: int,
                         settings: Settings, snapshot: Optional[ContentSnapshot]) -> None:
        cycle_id = generate_cycle_id(key, cycle)
        palette, source, derived = DEFAULT_PALETTE, None, False

        try:
            if snapshot is None:
                snapshot = await self._fetch_snapshot(key)
            with performance_monitor("resolve", key=key):
                palette, source, derived = await self._compute(key, snapshot, settings, cycle_id)
        except Exception as e:
            logger.exception(f"[{cycle_id}] Resolution for {key} crashed: {e}")
        finally:
            self._finish_cycle(key, cycle, generation, palette, source, derived, cycle_id)

    async def _fetch_snapshot(self, key: str) -> Optional[ContentSnapshot]:
        if self.snapshot_provider is None:
            return None

        try:
            async with self.probe.timeout_manager.timeout("snapshot"):
                return await self.snapshot_provider(key)
        except ExtractionError as e:
            self.metrics.record_recovered_error(type(e).__name__)
            logger.warning(f"Snapshot provider failed for {key}: {e}")
        except Exception as e:
            self.metrics.record_recovered_error(SourceUnavailable.__name__)
            logger.warning(f"Snapshot provider raised {type(e).__name__} for {key}: {e}")
        return None

    async def _compute(self, key: str,
                       snapshot: Optional[ContentSnapshot],
                       settings: Settings,
                       cycle_id: str) -> Tuple[Palette, Optional[str], bool]:
        """Probe, filter and adjust. Never raises for content problems."""
        result = await self.probe.probe(snapshot, key=key)
        if result is None:
            logger.info(f"[{cycle_id}] No color found for {key}, using default palette")
            return DEFAULT_PALETTE, None, False

        try:
            color = check_color(result.color, result.alpha)
        except InvalidColor as e:
            self.metrics.record_recovered_error(type(e).__name__)
            logger.info(f"[{cycle_id}] Rejected {result.source} color for {key}: {e}")
            return DEFAULT_PALETTE, result.source, False

        return build_palette(color, settings), result.source, True

    def _finish_cycle(self, key: str, cycle: int, generation: int,
                      palette: Palette, source: Optional[str], derived: bool,
                      cycle_id: str) -> None:
        slot = self._slots.get(key)
        if slot is None:
            return
        slot.task = None

        stale = slot.generation != generation or slot.cycle != cycle
        if stale:
            outcome = None
            self.metrics.increment("resolutions_discarded")
            logger.info(f"[{cycle_id}] Discarded stale resolution for {key}")
        elif derived:
            self.cache.set(key, palette, source)
            outcome = palette
            self.metrics.increment("resolutions_committed")
            self.log.info("Resolved palette", extra={
                'cycle_id': cycle_id,
                'key': key,
                'source': source,
                **palette.to_hex_dict(),
            })
        else:
            # The default palette is never cached, and an older palette no
            # longer describes this content
            self.cache.delete(key)
            outcome = palette
            self.metrics.increment("resolutions_default")

        if slot.rearm and self.is_active(key):
            slot.rearm = False
            if outcome is not None:
                self._settle(slot, outcome)
            self._arm(key, slot)
            return

        slot.rearm = False
        slot.state = KeyState.RESOLVED if self.cache.exists(key) else KeyState.IDLE
        self._settle(slot, outcome)
