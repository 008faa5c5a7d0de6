from __future__ import annotations

import logging
import sys


def configure_logging(level: str) -> None:
    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
        level=resolved,
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    if resolved > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
