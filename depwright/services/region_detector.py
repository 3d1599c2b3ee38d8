"""Region Detector.

Picks the network region used to select install commands:
CN uses the 'china' command variant, INTERNATIONAL uses 'global'.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger

from depwright.core.constants import CHINESE_LOCALES, REGION_CACHE_KEY, REGION_CACHE_TTL_DAYS
from depwright.core.models import RegionDetectionResult
from depwright.core.types import DetectionMethod, Region
from depwright.repositories.kv_store import KeyValueStore
from depwright.utils.platform_utils import PlatformUtils


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegionDetector:
    """Detects the user region from the system locale, with a TTL cache."""

    def __init__(
        self,
        store: KeyValueStore,
        locale_provider: Optional[Callable[[], Optional[str]]] = None,
        ttl: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._locale_provider = locale_provider or PlatformUtils.get_locale
        self._ttl = ttl if ttl is not None else timedelta(days=REGION_CACHE_TTL_DAYS)
        self._clock = clock or _utcnow

    def detect(self) -> Region:
        """Detect region from the system locale. Never raises."""
        try:
            locale_tag = self._locale_provider()
            logger.info(f"[RegionDetector] System locale detected: {locale_tag}")

            if locale_tag and PlatformUtils.normalize_locale(locale_tag) in CHINESE_LOCALES:
                return Region.CN
            return Region.INTERNATIONAL
        except Exception as e:
            logger.error(f"[RegionDetector] Failed to detect locale, defaulting to INTERNATIONAL: {e}")
            return Region.INTERNATIONAL

    def detect_with_cache(self) -> RegionDetectionResult:
        """Return the cached detection if younger than the TTL, else detect and cache."""
        cached = self._get_cached_detection()
        if cached:
            logger.debug("[RegionDetector] Using cached detection result")
            return cached

        logger.info("[RegionDetector] Performing new region detection")
        result = RegionDetectionResult(
            region=self.detect(),
            detected_at=self._clock(),
            method=DetectionMethod.LOCALE,
        )
        self._cache_detection_result(result)
        return result

    def redetect(self) -> RegionDetectionResult:
        """Force re-detection and clear cache."""
        logger.info("[RegionDetector] Forced re-detection requested")
        self.clear_cache()
        return self.detect_with_cache()

    def clear_cache(self) -> None:
        try:
            self._store.delete(REGION_CACHE_KEY)
        except Exception as e:
            logger.error(f"[RegionDetector] Failed to clear cache: {e}")

    def get_region(self) -> Region:
        return self.detect_with_cache().region

    def get_status(self) -> RegionDetectionResult:
        """Get current region status for display (cached when available)."""
        return self.detect_with_cache()

    def _get_cached_detection(self) -> Optional[RegionDetectionResult]:
        try:
            raw = self._store.get(REGION_CACHE_KEY)
            if not raw:
                return None

            cached = RegionDetectionResult.from_dict(raw)
            detected_at = cached.detected_at
            if detected_at.tzinfo is None:
                detected_at = detected_at.replace(tzinfo=timezone.utc)

            if self._clock() - detected_at > self._ttl:
                logger.info("[RegionDetector] Cache expired, will re-detect")
                return None

            return RegionDetectionResult(
                region=cached.region,
                detected_at=detected_at,
                method=DetectionMethod.CACHE,
            )
        except Exception as e:
            logger.error(f"[RegionDetector] Failed to read cache: {e}")
            return None

    def _cache_detection_result(self, result: RegionDetectionResult) -> None:
        try:
            if not self._store.set(REGION_CACHE_KEY, result.to_dict()):
                logger.warning("[RegionDetector] Detection result was not cached")
        except Exception as e:
            # Non-critical, continue without caching
            logger.error(f"[RegionDetector] Failed to cache detection result: {e}")
