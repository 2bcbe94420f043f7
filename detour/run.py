"""Programmatic uvicorn entry point for Detour.

Reads host and port from the loaded config (127.0.0.1:4343 by default).

Usage:
    python -m detour.run
    detour                 # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from detour.config import load_config

# Navigation events arrive from one local browser; keep the listener small.
UVICORN_LIMIT_CONCURRENCY: int = 100
UVICORN_BACKLOG: int = 50
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the Detour service.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    config = load_config()

    uvicorn.run(
        "detour.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
