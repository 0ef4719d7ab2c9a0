from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=_LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
    # urllib3 logs every redirect hop at DEBUG.
    logging.getLogger("urllib3").setLevel(max(resolved, logging.INFO))
