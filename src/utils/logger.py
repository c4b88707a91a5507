"""
Logger Module

Logging setup for the certificate exporter.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s'

# Chatty client libraries
NOISY_LOGGERS = ['urllib3', 'kubernetes.client.rest']


def setup_logging(level: str = 'INFO', fmt: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...)
        fmt: Optional log format, defaults to DEFAULT_FORMAT
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=fmt or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
