"""Tests for region detection and its cache."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from depwright.core.constants import REGION_CACHE_KEY
from depwright.core.types import DetectionMethod, Region
from depwright.repositories.kv_store import JsonFileStore
from depwright.services.region_detector import RegionDetector

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "settings.json"))


def make_detector(store, locale_tag="en-US", now=NOW):
    return RegionDetector(store, locale_provider=lambda: locale_tag, clock=lambda: now)


class TestDetect:
    @pytest.mark.parametrize("tag", ["zh-CN", "zh-TW", "zh-HK", "zh-SG", "zh_CN.UTF-8"])
    def test_chinese_locales(self, store, tag):
        """Test Chinese locales map to CN."""
        assert make_detector(store, tag).detect() == Region.CN

    @pytest.mark.parametrize("tag", ["en-US", "fr-FR", "zh", None])
    def test_other_locales(self, store, tag):
        """Test everything else maps to INTERNATIONAL."""
        assert make_detector(store, tag).detect() == Region.INTERNATIONAL

    def test_provider_failure(self, store):
        """Test a failing locale provider defaults to INTERNATIONAL."""
        provider = MagicMock(side_effect=RuntimeError("no locale"))
        detector = RegionDetector(store, locale_provider=provider)
        assert detector.detect() == Region.INTERNATIONAL


class TestDetectWithCache:
    def test_fresh_detection_is_cached(self, store):
        """Test a fresh detection is stored with method 'locale'."""
        result = make_detector(store, "zh-CN").detect_with_cache()

        assert result.region == Region.CN
        assert result.method == DetectionMethod.LOCALE
        assert result.detected_at == NOW
        assert store.get(REGION_CACHE_KEY)["region"] == "CN"

    def test_cache_hit_keeps_timestamp(self, store):
        """Test a cache hit reports method 'cache' and the original time."""
        make_detector(store, "zh-CN").detect_with_cache()

        later = make_detector(store, "en-US", now=NOW + timedelta(days=6))
        result = later.detect_with_cache()

        assert result.region == Region.CN
        assert result.method == DetectionMethod.CACHE
        assert result.detected_at == NOW

    def test_expired_cache(self, store):
        """Test entries older than the TTL trigger re-detection."""
        make_detector(store, "zh-CN").detect_with_cache()

        later = make_detector(store, "en-US", now=NOW + timedelta(days=7, seconds=1))
        result = later.detect_with_cache()

        assert result.region == Region.INTERNATIONAL
        assert result.method == DetectionMethod.LOCALE

    def test_corrupt_cache_is_miss(self, store):
        """Test malformed cache entries are ignored."""
        store.set(REGION_CACHE_KEY, {"region": "MARS", "detectedAt": "yesterday"})
        result = make_detector(store, "en-US").detect_with_cache()
        assert result.method == DetectionMethod.LOCALE
        assert result.region == Region.INTERNATIONAL

    def test_store_write_failure(self):
        """Test detection still succeeds when caching fails."""
        store = MagicMock()
        store.get.return_value = None
        store.set.side_effect = OSError("read-only")

        result = make_detector(store, "zh-CN").detect_with_cache()
        assert result.region == Region.CN

    def test_redetect_clears_cache(self, store):
        """Test redetect ignores a still-valid cache."""
        make_detector(store, "zh-CN").detect_with_cache()

        result = make_detector(store, "en-US").redetect()

        assert result.region == Region.INTERNATIONAL
        assert result.method == DetectionMethod.LOCALE

    def test_get_region(self, store):
        """Test get_region returns the detected region."""
        assert make_detector(store, "zh-HK").get_region() == Region.CN
