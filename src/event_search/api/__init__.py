"""
HTTP API for event search.

Exposes the aggregation pipeline and health reporting over REST.
"""

from .server import create_app, run_api_server

__all__ = ["create_app", "run_api_server"]
