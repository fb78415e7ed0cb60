"""Process-wide logging setup."""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Idempotent root logger init: one stdout handler at the given level."""
    root = logging.getLogger()
    resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root.setLevel(resolved)

    handler = getattr(root, "_webp_service_handler", None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(handler)
        root._webp_service_handler = handler  # type: ignore[attr-defined]
    handler.setLevel(resolved)

    # PIL logs every plugin it probes at DEBUG
    logging.getLogger("PIL").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    return logging.getLogger("webp_service")
