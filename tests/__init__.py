"""
GridStore Test Suite.

This package contains:
- unit/: Unit tests (types, values, config, stores on a temporary SQLite file)
- integration/: Integration tests (REST API via aiohttp test client, tools)
"""
