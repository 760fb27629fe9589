"""
BioNova-X - Server Entry Point
===============================
Validates configuration, then serves the API with ``uvicorn``.

A missing ``GOOGLE_API_KEY`` (or ``MONGO_URI``) is fatal: the process
prints the configuration error and exits with status 1 before binding
the port.

Usage:
    python -m bionova.scripts.serve
    python -m bionova.scripts.serve --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import argparse
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bionova-server", description="BioNova-X — Serve the research API.")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1).")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (default: settings.PORT).")
    parser.add_argument("--reload", action="store_true", default=False, help="Reload on code changes (development only).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    try:
        from bionova.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)

    import uvicorn

    from bionova.src.utils.logger import get_logger

    logger = get_logger(__name__)
    port = args.port or settings.PORT
    logger.info("Starting BioNova-X on http://%s:%d", args.host, port)

    uvicorn.run("bionova.src.main:create_app", factory=True, host=args.host, port=port, reload=args.reload, log_level="debug" if settings.ENV == "dev" else "warning")


if __name__ == "__main__":
    main()
