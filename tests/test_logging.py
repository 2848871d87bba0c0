import logging

from accountpool._logging import get_logger


def test_get_logger_name():
    """Verify get_logger returns a logger with the correct name."""
    logger = get_logger("AccountPool.Test")
    assert logger.name == "AccountPool.Test"


def test_no_double_handlers():
    """Repeated get_logger calls never attach handlers of their own."""
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    root_logger.handlers = []

    try:
        # Configure logging once, as an entry point would
        logging.basicConfig(level=logging.INFO)

        logger = get_logger("AccountPool.One")
        logger_2 = get_logger("AccountPool.Two")
        get_logger("AccountPool.One")

        assert len(root_logger.handlers) == 1
        assert len(logger.handlers) == 0
        assert len(logger_2.handlers) == 0

    finally:
        root_logger.handlers = original_handlers
