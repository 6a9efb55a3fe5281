"""HTTP middleware and handler decorators.

- cors_middleware: open CORS policy for browser clients on any origin
- error_middleware: JSON body for unhandled exceptions
- shutdown_check_middleware: decorator refusing new work during shutdown

Usage:
    from hlsconv.server.middleware import shutdown_check_middleware

    @shutdown_check_middleware
    async def convert_handler(request: web.Request) -> web.Response:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps

from aiohttp import web

from hlsconv.server.api.errors import INTERNAL_ERROR, SHUTTING_DOWN, api_error

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}


@web.middleware
async def cors_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """Attach CORS headers to every response and answer preflights.

    OPTIONS requests get an empty 204 without reaching the router's
    handler, so no route needs to declare OPTIONS itself.
    """
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)

    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise

    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """Convert unhandled exceptions into a JSON 500 response."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception(
            "Unhandled error: method=%s path=%s: %s", request.method, request.path, e
        )
        return api_error("Internal server error", code=INTERNAL_ERROR, status=500)


def shutdown_check_middleware(handler: Handler) -> Handler:
    """Decorator middleware that returns 503 if server is shutting down.

    Returns:
        JSON response with 503 status if shutting down, otherwise calls handler.
    """

    @wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        lifecycle = request.app.get("lifecycle")
        if lifecycle and lifecycle.is_shutting_down:
            return api_error(
                "Service is shutting down", code=SHUTTING_DOWN, status=503
            )
        return await handler(request)

    return wrapper
