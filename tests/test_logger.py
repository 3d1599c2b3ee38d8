from loguru import logger

from depwright.core.logger import setup_logging


class TestSetupLogging:
    def test_writes_log_file(self, tmp_path):
        """Test the debug file sink receives messages."""
        log_file = tmp_path / "logs" / "depwright.log"
        setup_logging("warning", str(log_file))
        try:
            logger.debug("[Test] debug line")
            logger.complete()
        finally:
            logger.remove()

        assert "[Test] debug line" in log_file.read_text()

    def test_without_file(self):
        """Test logging can be configured without a file sink."""
        assert setup_logging("info", None) is logger
        logger.remove()
