"""
Tests for metrics, stage timing, step timeouts, cycle ids and
configuration-derived settings.
"""
import asyncio
import re
from io import StringIO

import pytest
from loguru import logger
from pydantic import ValidationError

from tabtint.config import Config
from tabtint.schemas import Settings
from tabtint.services.coordinator import PaletteCoordinator
from tabtint.services.observability import MetricsCollector, get_metrics_collector, performance_monitor
from tabtint.services.reliability import DecodeFailure, ExtractionError, ExtractionTimeout, TimeoutManager
from tabtint.utils.ids import generate_cycle_id, key_tag
from tabtint.utils.logging import configure_logging, get_logger


class TestMetricsCollector:
    """Test counters and duration statistics"""

    def test_counters(self):
        collector = MetricsCollector()
        collector.increment("cache_hits")
        collector.increment("cache_hits", 2)
        collector.record_probe_outcome("icon", "miss")
        collector.record_recovered_error("DecodeFailure")

        assert collector.get_counter("cache_hits") == 3
        assert collector.get_counter("unknown") == 0
        assert collector.get_counters() == {
            "cache_hits": 3,
            "probe_icon_miss": 1,
            "recovered_DecodeFailure": 1,
        }

    def test_operation_stats_empty(self):
        assert MetricsCollector().get_operation_stats("resolve") == {}

    def test_reset(self):
        collector = MetricsCollector()
        collector.increment("resolutions_started")
        collector.reset()
        assert collector.get_counters() == {}


class TestPerformanceMonitor:
    """Test stage timing"""

    def test_records_duration(self):
        with performance_monitor("probe_theme_hint", key="tab-1"):
            pass

        metrics = get_metrics_collector()
        stats = metrics.get_operation_stats("probe_theme_hint")
        assert stats['count'] == 1
        assert stats['min_ms'] >= 0

        recent = metrics.get_recent_metrics(1)[0]
        assert recent['key'] == "tab-1"
        assert recent['error'] is None

    def test_records_failure_and_reraises(self):
        with pytest.raises(ValueError):
            with performance_monitor("resolve"):
                raise ValueError("boom")

        recent = get_metrics_collector().get_recent_metrics(1)[0]
        assert recent['error'] == "boom"

    def test_summary(self):
        with performance_monitor("resolve"):
            pass
        summary = get_metrics_collector().get_summary()
        assert "resolve" in summary['operations']
        assert summary['uptime_seconds'] >= 0


class TestTimeoutManager:
    """Test per-step timeouts"""

    @pytest.mark.asyncio
    async def test_expiry_raises_extraction_timeout(self):
        manager = TimeoutManager(default_timeout=0.01)
        with pytest.raises(ExtractionTimeout):
            async with manager.timeout("header_scan"):
                await asyncio.sleep(0.5)

    def test_timeout_is_an_extraction_error(self):
        assert issubclass(ExtractionTimeout, ExtractionError)

    @pytest.mark.asyncio
    async def test_fast_step_passes(self):
        manager = TimeoutManager(default_timeout=1.0)
        async with manager.timeout("theme_hint"):
            await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_per_operation_override(self):
        manager = TimeoutManager(default_timeout=1.0)
        manager.configure_timeouts({"icon": 0.01})
        with pytest.raises(ExtractionTimeout):
            async with manager.timeout("icon"):
                await asyncio.sleep(0.5)

    def test_default_comes_from_config(self):
        assert TimeoutManager().default_timeout == Config.STEP_TIMEOUT_MS / 1000.0


class TestIdsAndLogging:

    def test_cycle_id_format(self):
        cycle_id = generate_cycle_id("https://example.com/", 3)
        assert re.fullmatch(r"res-[0-9a-f]{8}-3-[0-9a-f]{6}", cycle_id)
        assert generate_cycle_id("https://example.com/", 3) != cycle_id

    def test_cycles_of_one_key_share_a_tag(self):
        assert key_tag("https://example.com/") == key_tag("https://example.com/")
        assert key_tag("https://example.com/") != key_tag("https://example.org/")
        assert generate_cycle_id("tab-1", 1).startswith(f"res-{key_tag('tab-1')}-1-")

    def test_logger_is_shared(self):
        assert get_logger() is get_logger()

    def test_library_keeps_host_sinks(self, settings):
        """Building a coordinator must not remove sinks the host configured"""
        host_sink = StringIO()
        handler_id = logger.add(host_sink, format="{message}")
        try:
            PaletteCoordinator(settings=settings)
            get_logger().info("Coordinator ready", extra={'keys': 0})
            logger.info("host message")
        finally:
            logger.remove(handler_id)

        output = host_sink.getvalue()
        assert "Coordinator ready" in output
        assert "host message" in output

    def test_configure_logging_installs_structured_sink(self):
        sink = StringIO()
        handler_id = configure_logging(level="INFO", sink=sink)
        try:
            get_logger().info("Resolved palette", extra={'key': "tab-1"})
        finally:
            logger.remove(handler_id)

        line = sink.getvalue()
        assert "| INFO | Resolved palette |" in line
        assert "'key': 'tab-1'" in line

    def test_recovered_failure_logs_warning(self, log_sink):
        with pytest.raises(DecodeFailure):
            with performance_monitor("probe_icon"):
                raise DecodeFailure("not an image")

        output = log_sink.getvalue()
        assert "WARNING | Operation probe_icon" in output
        assert "ERROR" not in output

    def test_unexpected_failure_logs_error(self, log_sink):
        with pytest.raises(RuntimeError):
            with performance_monitor("resolve"):
                raise RuntimeError("bug")

        assert "ERROR | Operation resolve failed" in log_sink.getvalue()


class TestSettings:
    """Test settings snapshots built from configuration"""

    def test_from_config_defaults(self):
        class Defaults(Config):
            SATURATION_TARGET = 70
            LIGHTNESS_TARGET = 25
            DEBOUNCE_MS = 500
            EXCLUDED_KEYS = ""
            ENABLED = True
            DARK_MODE_ONLY = False
            ADJUST_MODE = "override"

        settings = Settings.from_config(Defaults())
        assert settings == Settings()

    def test_from_config_exclusions(self):
        class Custom(Config):
            EXCLUDED_KEYS = "chrome://, *.internal/*,,"
            ADJUST_MODE = "blend"

        settings = Settings.from_config(Custom())
        assert settings.excluded_keys == frozenset({"chrome://", "*.internal/*"})
        assert settings.adjust_mode == "blend"

    def test_excluded_keys_accepts_string_or_iterable(self):
        assert Settings(excluded_keys="a, b").excluded_keys == frozenset({"a", "b"})
        assert Settings(excluded_keys=["a", " ", "b"]).excluded_keys == frozenset({"a", "b"})

    def test_same_adjustment(self):
        base = Settings()
        assert base.same_adjustment(Settings(debounce_ms=10, enabled=False))
        assert not base.same_adjustment(Settings(lightness_target=80))
        assert not base.same_adjustment(Settings(adjust_mode="blend"))

    def test_settings_are_frozen(self):
        with pytest.raises(ValidationError):
            Settings().saturation_target = 10

    def test_quantizer_validators(self):
        assert Config.validate_granularity(16)
        assert not Config.validate_granularity(24)
        assert not Config.validate_stride(0)
