"""Main entry point for the unified inbox core."""

import argparse
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from inbox.api import create_fastapi_app
from inbox.api.routes import control
from inbox.logging_config import setup_logging
from sim import Sim


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the inbox API server")
    parser.add_argument("--host", default=os.getenv("API_HOST", "localhost"))
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000")))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    parser.add_argument(
        "--no-sim", action="store_true", help="Do not expose the traffic simulator"
    )
    return parser.parse_args(argv)


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    args = parse_args()
    setup_logging(log_level=args.log_level)

    # The simulator posts to this server's own webhook
    if not args.no_sim:
        control.set_sim_instance(Sim(api_url=f"http://{args.host}:{args.port}"))

    uvicorn.run(
        create_fastapi_app(),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
