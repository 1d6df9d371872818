"""Logging configuration."""
import logging
import sys
from typing import Union

QUIET_LOGGERS = ("httpx", "openai", "twilio")


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Send application logs to stdout; third-party clients log warnings only."""
    logging.basicConfig(
        level=level.upper() if isinstance(level, str) else level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
