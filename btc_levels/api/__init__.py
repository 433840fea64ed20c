"""
API module for BTC Levels system.

FastAPI app exposing health, levels reports and cache statistics.
"""

from .levels_api import create_levels_app, run_server

__all__ = [
    "create_levels_app",
    "run_server"
]
