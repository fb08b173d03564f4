"""
Loguru configuration shared by the API and the pipeline services.
"""

import sys
from loguru import logger
from .config import Settings, settings as default_settings


def setup_logging(settings: Settings | None = None):
    """
    Replace loguru's default sink with one configured from settings.

    LOG_LEVEL controls verbosity; LOG_JSON switches to serialized records
    for log shippers. Keyword arguments passed to logger calls end up in
    the record's "extra" mapping.

    Returns:
        The configured loguru logger
    """
    settings = settings or default_settings

    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        serialize=settings.log_json,
        backtrace=False,
        diagnose=settings.app_env == "dev",
    )
    return logger.bind(app=settings.app_name)
