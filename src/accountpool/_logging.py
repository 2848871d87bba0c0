import logging


def get_logger(name: str) -> logging.Logger:
    """Return a named logger without attaching handlers.

    Handler and level configuration belongs to the entry point
    (``accountpool.cli.main``), which calls ``logging.basicConfig`` once.
    """
    return logging.getLogger(name)
