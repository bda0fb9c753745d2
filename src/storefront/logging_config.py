import logging
import os
import sys


def configure_logging(level=None) -> None:
    """
    Configure global logging settings.

    Level comes from the argument, else LOG_LEVEL, else INFO.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    # Remove existing handlers to avoid duplication
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(handler)

    # SQL echo is opt-in through the engine, not the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
