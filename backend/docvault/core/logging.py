from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    logging.getLogger("docvault").setLevel(level)
    # Per-request noise from the multipart parser.
    logging.getLogger("multipart").setLevel(logging.WARNING)
