import logging

from config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def setup_logging(level: str | None = None, force: bool = False) -> None:
    """Configure root logging once per process.

    ``level`` overrides ``settings.LOG_LEVEL``; unknown names fall back to INFO.
    """
    global _configured
    if _configured and not force:
        return

    name = (level or settings.LOG_LEVEL or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
        force=force,
    )
    # uvicorn's access log duplicates the request middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    _configured = True
