from __future__ import annotations

import argparse

import uvicorn

from demo_service.config import get_settings
from demo_service.main import create_app
from demo_service.observability.logging import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Observability demo HTTP service")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    args = parser.parse_args()

    configure_logging()
    settings = get_settings()
    # uvicorn exits with status 1 when the port cannot be bound.
    uvicorn.run(create_app(settings), host=args.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
