"""Run the egg price finder API under uvicorn.

HOST, PORT and LOG_LEVEL pick the bind address and root log level;
UVICORN_RELOAD and UVICORN_LOG_LEVEL are passed through to uvicorn. Storage,
seeding and refresh settings are read by ``price_finder_backend.config``.
"""

from __future__ import annotations

import logging
import os

import uvicorn


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def main() -> None:
    configure_logging()
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(
        "price_finder_backend.app:app",
        host=host,
        port=port,
        reload=os.getenv("UVICORN_RELOAD", "0").lower() in {"1", "true", "yes"},
        log_level=os.getenv("UVICORN_LOG_LEVEL", "info"),
    )


if __name__ == "__main__":
    main()
