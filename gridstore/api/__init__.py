"""
API module for GridStore.

This module provides the external REST interface (aiohttp) over the
GridStore facade.

Invariants:
    - Handlers delegate to GridStore; no SQL here
    - Store errors become JSON bodies with a fixed HTTP status

How to change safely:
    - Add new routes, don't modify the shape of existing ones
"""

from .http_server import create_http_app, run_http_server

__all__ = [
    "create_http_app",
    "run_http_server",
]
