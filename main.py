#!/usr/bin/env python3
"""
Portfel - Entry point for running the application.

Usage:
    python main.py                      # Run web server
    python main.py --port 9000          # Custom port
    python main.py --sample-csv         # Print a CSV import template
"""

import argparse
import logging

import uvicorn

from portfel.config import get_config
from portfel.csv_import import generate_sample_csv
from portfel.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Portfel portfolio tracker")
    parser.add_argument("--host", default="127.0.0.1", help="Web server host")
    parser.add_argument("--port", type=int, default=8000, help="Web server port")
    parser.add_argument("--sample-csv", action="store_true", help="Print a sample import file and exit")
    args = parser.parse_args()

    if args.sample_csv:
        print(generate_sample_csv(), end="")
        return

    config = get_config()
    configure_logging(config)

    # Storage and the notification scheduler are started by the app lifespan
    # (portfel.app) in the same event loop that serves requests.
    logger.info(f"Running web server on {args.host}:{args.port}")
    uvicorn.run("portfel.app:app", host=args.host, port=args.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
