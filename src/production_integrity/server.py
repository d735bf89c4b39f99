"""Entrypoint for the production integrity HTTP server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from production_integrity import __version__
from production_integrity.config import load_settings
from production_integrity.logging_utils import configure_logging


def run_entrypoint() -> None:
    """Configure logging and serve the HTTP app with uvicorn."""
    settings = load_settings()
    configure_logging()
    from production_integrity.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the HTTP server") from exc

    logging.info("Initializing production integrity server v%s", __version__)
    logging.info("SQLite store at: %s", settings.storage.sqlite_path)
    app = create_http_app()
    # Plain JSON over HTTP; no websocket endpoints.
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
