"""
Logging configuration for the API process.
Library modules only create loggers; handlers are installed here once.
"""
import logging

from stackcost.core.config import config


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """
    Install a root handler with the configured level.

    Args:
        level: Optional level name overriding LOG_LEVEL
    """
    level_name = (level or config.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    # botocore and httpx are chatty at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
