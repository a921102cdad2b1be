"""
Process-wide logging setup, called once by the API at startup.
Modules log through logging.getLogger(__name__).
"""
from __future__ import annotations

import logging

from chef_league.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("chef_league").setLevel(level)
