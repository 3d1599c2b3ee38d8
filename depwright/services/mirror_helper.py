"""npm registry mirror selection based on the detected region."""
from typing import List

from loguru import logger

from depwright.core.constants import NPM_MIRROR_URL, NPM_OFFICIAL_URL
from depwright.core.models import MirrorStatus
from depwright.core.types import Region
from depwright.services.region_detector import RegionDetector


class MirrorHelper:
    """Maps the detected region to an npm registry."""

    def __init__(self, region_detector: RegionDetector):
        self._region_detector = region_detector

    def get_npm_install_args(self) -> List[str]:
        """
        Get extra npm install arguments for the current region.

        Returns:
            ['--registry', <mirror>] in CN, empty list otherwise
        """
        if self._region_detector.get_region() == Region.CN:
            logger.info(f"[MirrorHelper] Using npm mirror: {NPM_MIRROR_URL}")
            return ["--registry", NPM_MIRROR_URL]

        logger.info("[MirrorHelper] Using official npm registry")
        return []

    def get_mirror_status(self) -> MirrorStatus:
        detection = self._region_detector.detect_with_cache()

        if detection.region == Region.CN:
            return MirrorStatus(
                region=Region.CN,
                mirror_url=NPM_MIRROR_URL,
                mirror_name="npmmirror (China)",
                detected_at=detection.detected_at,
            )

        return MirrorStatus(
            region=Region.INTERNATIONAL,
            mirror_url=NPM_OFFICIAL_URL,
            mirror_name="Official npm",
            detected_at=detection.detected_at,
        )
