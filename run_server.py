#!/usr/bin/env python3
"""
Event Search Aggregator - HTTP Server

Runs the aggregated event search API with uvicorn.

Usage:
    # Run with defaults (credentials from the environment)
    python run_server.py --port 8080

    # Run with a YAML settings file
    python run_server.py --config settings.yaml

Environment Variables:
    TICKETMASTER_API_KEY: Ticketmaster Discovery API key
    EVENTBRITE_TOKEN: Eventbrite OAuth token
    RAPIDAPI_KEY: RapidAPI key for real-time events search
    EVENT_SEARCH_CONFIG: Path to a YAML settings file
    EVENT_SEARCH_PORT: Server port (default: 8080)
    EVENT_SEARCH_HOST: Server host (default: 0.0.0.0)
    EVENT_SEARCH_LOG_LEVEL: debug, info, warning or error (default: info)
"""

import argparse
import logging
import os
import sys

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from event_search.api.server import run_api_server
from event_search.core.exceptions import ConfigurationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Run the Event Search Aggregator HTTP API"
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("EVENT_SEARCH_CONFIG"),
        help="YAML settings file (default: $EVENT_SEARCH_CONFIG)"
    )
    parser.add_argument(
        "--host",
        default=os.environ.get("EVENT_SEARCH_HOST", "0.0.0.0"),
        help="Server host (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("EVENT_SEARCH_PORT", "8080")),
        help="Server port (default: 8080)"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=os.environ.get("EVENT_SEARCH_LOG_LEVEL", "info").lower(),
        help="Log level (default: $EVENT_SEARCH_LOG_LEVEL or info)"
    )

    args = parser.parse_args()
    logging.getLogger().setLevel(args.log_level.upper())

    logger.info("Creating Event Search Aggregator...")
    logger.info(f"  Config file: {args.config or 'Not set'}")
    for var in ("TICKETMASTER_API_KEY", "EVENTBRITE_TOKEN", "RAPIDAPI_KEY"):
        logger.info(f"  {var}: {'Set' if os.environ.get(var) else 'Not set'}")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")

    try:
        run_api_server(
            host=args.host,
            port=args.port,
            config_path=args.config,
            log_level=args.log_level,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
