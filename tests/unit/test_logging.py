"""Unit tests for structured logging setup."""

import logging

from structlog.testing import capture_logs

from healthscore.config import Settings
from healthscore.shared.logging import get_logger, setup_logging


class TestSetupLogging:
    def test_host_owned_root_logger_is_left_alone(self, test_settings):
        root = logging.getLogger()
        handlers_before = list(root.handlers)

        setup_logging(test_settings, configure_stdlib=False)

        assert root.handlers == handlers_before

    def test_debug_flag_sets_package_level(self):
        setup_logging(Settings(_env_file=None, app_debug=True), configure_stdlib=False)
        assert logging.getLogger("healthscore").level == logging.DEBUG

        setup_logging(Settings(_env_file=None), configure_stdlib=False)
        assert logging.getLogger("healthscore").level == logging.INFO

    def test_module_loggers_follow_reconfiguration(self, test_settings):
        logger = get_logger("healthscore.tests")
        setup_logging(test_settings, configure_stdlib=False)
        logger.info("first_event")

        with capture_logs() as logs:
            logger.info("second_event", handle="0xabc")

        assert logs == [{"event": "second_event", "handle": "0xabc", "log_level": "info"}]

    def test_http_client_noise_is_quieted(self, test_settings):
        setup_logging(test_settings, configure_stdlib=False)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
