import logging
import os
from typing import Optional


def setup_logging(level: Optional[str] = None):
    """Configure root logging from MEMBERSHIP_AUTH_LOG_LEVEL (or ``level``)."""
    if level is None:
        level = os.getenv("MEMBERSHIP_AUTH_LOG_LEVEL", "INFO")

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger("membership_authkit")
    logger.setLevel(log_level)
    return logger
