"""
TabTint Source Probe
Finds a raw accent color in a content snapshot by trying an ordered list of
strategies: declared theme hint, header scan, page background, icon.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from tabtint.config import Config, config
from tabtint.schemas import RawColor
from tabtint.services.colors.color_math import parse_css_color
from tabtint.services.colors.quantizer import dominant_icon_color
from tabtint.services.observability import get_metrics_collector, performance_monitor
from tabtint.services.reliability import (
    ExtractionError,
    ExtractionTimeout,
    SourceUnavailable,
    TimeoutManager,
)


@dataclass(frozen=True)
class BoundingBox:
    """Element geometry in CSS pixels relative to the viewport."""
    top: float
    left: float
    width: float
    height: float


@dataclass(frozen=True)
class ElementInfo:
    """A DOM element as seen by the probe: geometry plus resolved background."""
    rect: BoundingBox
    background: Optional[str] = None


class ContentSnapshot(ABC):
    """
    Read-only view of one piece of content, implemented by the host.

    Every accessor is a coroutine so hosts can reach across process or
    document boundaries; the probe bounds each call with a timeout.
    """

    @abstractmethod
    async def declared_hint(self, name: str) -> Optional[str]:
        """Value of a metadata color directive such as ``theme-color``."""

    @abstractmethod
    async def query_elements(self, selector: str) -> Sequence[ElementInfo]:
        """Elements matching a CSS selector, in document order."""

    @abstractmethod
    async def page_background(self, root: str) -> Optional[str]:
        """Resolved background color of ``body`` or ``html``."""

    @abstractmethod
    async def icon_reference(self) -> Optional[str]:
        """Reference (usually a URL) of the content's icon, if any."""

    @abstractmethod
    async def fetch_icon(self, reference: str) -> bytes:
        """Raw encoded bytes of the icon behind ``reference``."""


@dataclass
class StaticSnapshot(ContentSnapshot):
    """Snapshot backed by plain data captured ahead of time."""
    hints: Dict[str, str] = field(default_factory=dict)
    elements: Dict[str, List[ElementInfo]] = field(default_factory=dict)
    backgrounds: Dict[str, str] = field(default_factory=dict)
    icon_ref: Optional[str] = None
    icons: Dict[str, bytes] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StaticSnapshot":
        """
        Build a snapshot from JSON-like data.

        Element entries are ``{"rect": [top, left, width, height], "background": str}``.
        """
        elements = {
            selector: [
                ElementInfo(rect=BoundingBox(*entry["rect"]), background=entry.get("background"))
                for entry in entries
            ]
            for selector, entries in data.get("elements", {}).items()
        }
        return cls(
            hints=dict(data.get("hints", {})),
            elements=elements,
            backgrounds=dict(data.get("backgrounds", {})),
            icon_ref=data.get("icon_ref"),
            icons=dict(data.get("icons", {})),
        )

    async def declared_hint(self, name: str) -> Optional[str]:
        return self.hints.get(name)

    async def query_elements(self, selector: str) -> Sequence[ElementInfo]:
        return list(self.elements.get(selector, []))

    async def page_background(self, root: str) -> Optional[str]:
        return self.backgrounds.get(root)

    async def icon_reference(self) -> Optional[str]:
        return self.icon_ref

    async def fetch_icon(self, reference: str) -> bytes:
        try:
            return self.icons[reference]
        except KeyError:
            raise SourceUnavailable(f"Icon {reference} not captured")


@dataclass(frozen=True)
class ProbeResult:
    """Raw color found by the probe and where it came from."""
    color: RawColor
    alpha: float
    source: str


Strategy = Callable[[ContentSnapshot], Awaitable[Optional[ProbeResult]]]


def _opaque(value: Optional[str]) -> Optional[Tuple[RawColor, float]]:
    parsed = parse_css_color(value)
    if parsed is None or parsed[1] <= 0.0:
        return None
    return parsed


class SourceProbe:
    """Runs the probe strategies in order; the first color found wins."""

    def __init__(self,
                 timeout_manager: Optional[TimeoutManager] = None,
                 cfg: Optional[Config] = None):
        self.config = cfg or config
        self.timeout_manager = timeout_manager or TimeoutManager()
        self.metrics = get_metrics_collector()

    def strategies(self) -> List[Tuple[str, Strategy]]:
        return [
            ("theme_hint", self.from_theme_hint),
            ("header_scan", self.from_header_scan),
            ("page_background", self.from_page_background),
            ("icon", self.from_icon),
        ]

    async def probe(self, snapshot: Optional[ContentSnapshot], key: Optional[str] = None) -> Optional[ProbeResult]:
        """
        Find a raw color in ``snapshot``.

        Each strategy is bounded by the step timeout; timeouts and other
        extraction errors only skip that strategy. Returns None when nothing
        usable was found, which is a normal outcome.
        """
        if snapshot is None:
            self.metrics.record_recovered_error(SourceUnavailable.__name__)
            logger.warning(f"No snapshot available for {key}")
            return None

        for name, strategy in self.strategies():
            try:
                with performance_monitor(f"probe_{name}", key=key):
                    async with self.timeout_manager.timeout(name):
                        result = await strategy(snapshot)
            except ExtractionTimeout as e:
                self.metrics.record_probe_outcome(name, "timeout")
                self.metrics.record_recovered_error(type(e).__name__)
                logger.warning(f"Probe strategy {name} timed out for {key}: {e}")
                continue
            except ExtractionError as e:
                self.metrics.record_probe_outcome(name, "error")
                self.metrics.record_recovered_error(type(e).__name__)
                logger.warning(f"Probe strategy {name} failed for {key}: {e}")
                continue
            except Exception as e:
                # Host snapshot bugs count as an unreachable source for this step
                self.metrics.record_probe_outcome(name, "error")
                self.metrics.record_recovered_error(SourceUnavailable.__name__)
                logger.warning(f"Probe strategy {name} raised {type(e).__name__} for {key}: {e}")
                continue

            if result is not None:
                self.metrics.record_probe_outcome(name, "hit")
                logger.debug(f"Probe found {result.color.hex} via {result.source} for {key}")
                return result

            self.metrics.record_probe_outcome(name, "miss")

        logger.debug(f"Probe found no color for {key}")
        return None

    async def from_theme_hint(self, snapshot: ContentSnapshot) -> Optional[ProbeResult]:
        """Declared theme color, accepted as soon as it parses."""
        for name in self.config.THEME_HINT_NAMES:
            parsed = _opaque(await snapshot.declared_hint(name))
            if parsed:
                return ProbeResult(color=parsed[0], alpha=parsed[1], source=f"theme_hint:{name}")
        return None

    def _header_sized(self, rect: BoundingBox) -> bool:
        return (
            rect.width >= self.config.HEADER_MIN_WIDTH
            and rect.height >= self.config.HEADER_MIN_HEIGHT
            and rect.top <= self.config.HEADER_MAX_TOP
        )

    async def from_header_scan(self, snapshot: ContentSnapshot) -> Optional[ProbeResult]:
        """First visible, header-sized banner element with an opaque background."""
        for selector in self.config.HEADER_SELECTORS:
            for element in await snapshot.query_elements(selector):
                if not self._header_sized(element.rect):
                    continue
                parsed = _opaque(element.background)
                if parsed:
                    return ProbeResult(color=parsed[0], alpha=parsed[1], source=f"header_scan:{selector}")
        return None

    async def from_page_background(self, snapshot: ContentSnapshot) -> Optional[ProbeResult]:
        """Background of body, then html, then common main containers."""
        for root in self.config.PAGE_ROOTS:
            parsed = _opaque(await snapshot.page_background(root))
            if parsed:
                return ProbeResult(color=parsed[0], alpha=parsed[1], source=f"page_background:{root}")

        for selector in self.config.CONTAINER_SELECTORS:
            for element in await snapshot.query_elements(selector):
                parsed = _opaque(element.background)
                if parsed:
                    return ProbeResult(color=parsed[0], alpha=parsed[1], source=f"page_background:{selector}")
        return None

    async def from_icon(self, snapshot: ContentSnapshot) -> Optional[ProbeResult]:
        """Dominant color of the content icon."""
        reference = await snapshot.icon_reference()
        if not reference:
            return None

        data = await snapshot.fetch_icon(reference)
        quantized = await asyncio.to_thread(dominant_icon_color, data)
        if quantized is None:
            return None
        return ProbeResult(color=quantized.color, alpha=1.0, source="icon")
