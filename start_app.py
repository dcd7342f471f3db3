# start_app.py
"""Configure logging and launch the console API server."""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn
from dotenv import load_dotenv

import config
from cafe.app.obs import configure_logging


def main(argv: list[str] | None = None) -> None:
    """Load settings, pick the store backend, then start the API."""

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--backend",
        choices=[backend.value for backend in config.StoreBackend],
        help="Override the configured document store backend",
    )
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    args = parser.parse_args(argv)

    load_dotenv()  # load environment variables from a .env file

    if args.backend:
        os.environ["STORE_BACKEND"] = args.backend
        config.get_settings.cache_clear()
    settings = config.get_settings()
    configure_logging(settings.log_level.upper(), json_output=settings.log_json)

    try:
        uvicorn.run(
            "cafe.app.main:app",
            host="0.0.0.0",  # nosec B104: bind for local development
            port=args.port,
            log_level=settings.log_level.lower(),
            log_config=None,
        )
    except ModuleNotFoundError as exc:
        missing = exc.name or str(exc)
        print(
            f"Missing dependency: {missing}. Install it with 'pip install {missing}'",
            file=sys.stderr,
        )
        raise SystemExit(1)


if __name__ == "__main__":
    main()
