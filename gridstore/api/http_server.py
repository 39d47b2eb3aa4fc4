"""
HTTP server implementation for GridStore.

This module provides the REST API used by the spreadsheet front end.
Every handler is a thin translation between JSON and one GridStore
operation:

    GET    /api/health
    GET    /api/columns
    POST   /api/columns
    DELETE /api/columns/{column_id}
    GET    /api/columns/{column_id}/options
    POST   /api/columns/{column_id}/options
    GET    /api/rows?page=&limit=
    POST   /api/rows
    DELETE /api/rows/{row_id}
    PATCH  /api/cell
    GET    /api/summary

Invariants:
    - Handlers never touch SQLite directly
    - GridStoreError subclasses map to fixed HTTP statuses
    - Error bodies are {"error", "error_code", "details"}, without
      storage internals

How to change safely:
    - Add new routes, don't change the shape of existing responses
    - Keep value encoding in schema/values.py, not in handlers
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from ..config import HttpConfig
from ..errors import (
    ConflictError,
    GridStoreError,
    InvalidReferenceError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
)
from ..schema.types import ColumnType
from ..schema.values import cell_content_to_json, cell_value_from_json
from ..store.grid_store import GridStore
from ..store.lookups import fits_sqlite_integer

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[GridStoreError], int] = {
    ValidationError: 400,
    TypeMismatchError: 400,
    InvalidReferenceError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


def error_status(error: GridStoreError) -> int:
    """HTTP status for a store error."""
    for error_type, status in _ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_http_app(
    store: GridStore,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create an HTTP application for GridStore.

    Args:
        store: Initialized GridStore
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()

    # Add CORS middleware
    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            response = await handler(request)

        origin = request.headers.get("Origin", "*")
        if "*" in config.cors_origins or origin in config.cors_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except GridStoreError as e:
            status = error_status(e)
            logger.info(
                f"Request rejected: {e.message}",
                extra={"path": request.path, "status": status, "error_code": e.code},
            )
            return web.json_response(e.to_dict(), status=status)
        except web.HTTPException as e:
            return web.json_response(
                {"error": e.reason, "error_code": "HTTP_ERROR", "details": {}},
                status=e.status,
            )
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
            return web.json_response(
                {"error": "Internal server error", "error_code": "INTERNAL", "details": {}},
                status=500,
            )

    app = web.Application(middlewares=[cors_middleware, error_middleware])

    # Add routes
    app.router.add_get("/api/health", lambda r: handle_health(r, store))
    app.router.add_get("/api/columns", lambda r: handle_list_columns(r, store))
    app.router.add_post("/api/columns", lambda r: handle_create_column(r, store))
    app.router.add_delete(
        "/api/columns/{column_id}", lambda r: handle_delete_column(r, store)
    )
    app.router.add_get(
        "/api/columns/{column_id}/options", lambda r: handle_list_options(r, store)
    )
    app.router.add_post(
        "/api/columns/{column_id}/options", lambda r: handle_add_option(r, store)
    )
    app.router.add_get("/api/rows", lambda r: handle_list_rows(r, store, config))
    app.router.add_post("/api/rows", lambda r: handle_create_row(r, store))
    app.router.add_delete("/api/rows/{row_id}", lambda r: handle_delete_row(r, store))
    app.router.add_patch("/api/cell", lambda r: handle_update_cell(r, store))
    app.router.add_get("/api/summary", lambda r: handle_summary(r, store))

    return app


async def read_json_body(request: web.Request) -> dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def parse_int(raw: Any, field_name: str) -> int:
    """Parse a path, query or body value as an integer id.

    Raises:
        ValidationError: If the value is not an integer SQLite can store
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Valid {field_name} is required", field_name=field_name)
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw))
        except (TypeError, ValueError):
            raise ValidationError(
                f"Valid {field_name} is required", field_name=field_name
            ) from None
    if not fits_sqlite_integer(value):
        raise ValidationError(f"{field_name} is out of range", field_name=field_name)
    return value


def option_labels(raw: Any) -> list[str]:
    """Accept option labels as strings or {"label"|"value": ...} objects."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("Options must be a list", field_name="options")
    labels = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("label", item.get("value"))
        labels.append(item)
    return labels


async def handle_health(request: web.Request, store: GridStore) -> web.Response:
    """Handle GET /api/health - Health check."""
    result = await store.health()
    result["timestamp"] = datetime.now(timezone.utc).isoformat()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)


async def handle_list_columns(request: web.Request, store: GridStore) -> web.Response:
    """Handle GET /api/columns - Active columns with their options."""
    columns = await store.list_active_columns()
    options = await store.list_options_for_columns([c.id for c in columns])

    result = []
    for column in columns:
        entry = column.to_dict()
        entry["options"] = [option.to_dict() for option in options[column.id]]
        result.append(entry)
    return web.json_response(result)


async def handle_create_column(request: web.Request, store: GridStore) -> web.Response:
    """Handle POST /api/columns - Create a column."""
    body = await read_json_body(request)
    name = body.get("name", body.get("column_name"))
    column_type = body.get("data_type", body.get("column_type"))

    column = await store.create_column(name, column_type, option_labels(body.get("options")))

    entry = column.to_dict()
    if column.type.is_choice:
        entry["options"] = [o.to_dict() for o in await store.list_active_options(column.id)]
    else:
        entry["options"] = []
    return web.json_response(entry, status=201)


async def handle_delete_column(request: web.Request, store: GridStore) -> web.Response:
    """Handle DELETE /api/columns/{column_id} - Deactivate a column."""
    column_id = parse_int(request.match_info["column_id"], "column_id")
    await store.deactivate_column(column_id)
    return web.json_response({"success": True, "message": "Column deleted successfully"})


async def handle_list_options(request: web.Request, store: GridStore) -> web.Response:
    """Handle GET /api/columns/{column_id}/options - Active options."""
    column_id = parse_int(request.match_info["column_id"], "column_id")
    options = await store.list_active_options(column_id)
    return web.json_response([option.to_dict() for option in options])


async def handle_add_option(request: web.Request, store: GridStore) -> web.Response:
    """Handle POST /api/columns/{column_id}/options - Append an option."""
    column_id = parse_int(request.match_info["column_id"], "column_id")
    body = await read_json_body(request)
    option = await store.add_option(column_id, body.get("label", body.get("value")))
    return web.json_response(option.to_dict(), status=201)


async def handle_list_rows(
    request: web.Request,
    store: GridStore,
    config: HttpConfig,
) -> web.Response:
    """Handle GET /api/rows - Page of rows with their cells."""
    page = parse_int(request.query.get("page", 1), "page")
    limit = parse_int(request.query.get("limit", config.default_page_size), "limit")
    if page < 1:
        raise ValidationError("page must be >= 1", field_name="page")
    if not 1 <= limit <= config.max_page_size:
        raise ValidationError(
            f"limit must be between 1 and {config.max_page_size}", field_name="limit"
        )

    columns = await store.list_active_columns()
    rows = await store.list_active_rows_page(offset=(page - 1) * limit, limit=limit)
    total = await store.count_active_rows()
    cells_by_row = await store.read_rows_cells([row.id for row in rows])

    result = []
    for row in rows:
        cells = cells_by_row.get(row.id, {})
        entry = row.to_dict()
        entry["cells"] = [
            {
                "column_id": column.id,
                "data_type": column.type.value,
                "value": cell_content_to_json(cells[column.id]),
            }
            for column in columns
            if column.id in cells
        ]
        result.append(entry)

    return web.json_response(
        {
            "rows": result,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }
    )


async def handle_create_row(request: web.Request, store: GridStore) -> web.Response:
    """Handle POST /api/rows - Insert a row at the top."""
    row = await store.insert_row_at_top()
    entry = row.to_dict()
    entry["cells"] = []
    return web.json_response(entry, status=201)


async def handle_delete_row(request: web.Request, store: GridStore) -> web.Response:
    """Handle DELETE /api/rows/{row_id} - Delete a row."""
    row = await store.delete_row(request.match_info["row_id"])
    return web.json_response(
        {
            "success": True,
            "message": "Row deleted successfully",
            "deleted_row_number": row.position,
        }
    )


async def handle_update_cell(request: web.Request, store: GridStore) -> web.Response:
    """Handle PATCH /api/cell - Write one cell."""
    body = await read_json_body(request)

    row_id = body.get("row_id")
    if not isinstance(row_id, str) or not row_id:
        raise ValidationError("row_id is required", field_name="row_id")
    if body.get("column_id") is None:
        raise ValidationError("column_id is required", field_name="column_id")
    column_id = parse_int(body["column_id"], "column_id")

    data_type = body.get("data_type")
    if not isinstance(data_type, str):
        raise ValidationError("data_type is required", field_name="data_type")
    try:
        column_type = ColumnType.from_str(data_type)
    except ValueError as e:
        raise ValidationError(str(e), field_name="data_type") from None

    value = cell_value_from_json(column_type, body.get("value"))
    if column_type == ColumnType.MULTI_CHOICE:
        stored: Any = await store.write_multi_choice_cell(row_id, column_id, value)
    else:
        stored = await store.write_cell(row_id, column_id, value)

    return web.json_response(
        {
            "success": True,
            "message": "Cell updated successfully",
            "row_id": row_id,
            "column_id": column_id,
            "data_type": column_type.value,
            "value": cell_content_to_json(stored),
        }
    )


async def handle_summary(request: web.Request, store: GridStore) -> web.Response:
    """Handle GET /api/summary - Per-column statistics."""
    summaries = await store.compute_summaries()
    return web.json_response(
        {
            "summaries": [s.to_dict() for s in summaries],
            "total_columns": len(summaries),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
    )


async def run_http_server(
    store: GridStore,
    config: HttpConfig | None = None,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        store: Initialized GridStore
        config: HTTP server configuration
    """
    config = config or HttpConfig()
    app = create_http_app(store, config)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    logger.info(f"HTTP server running on http://{config.host}:{config.port}")

    # Serve until the task is cancelled
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
