"""Artifact download API handlers.

Endpoints:
    GET    /downloads/{filename}  - Download a converted file
    DELETE /downloads/{filename}  - Delete a converted file
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import web

from hlsconv.conversion.artifacts import DeleteOutcome
from hlsconv.server.api.errors import INVALID_FILENAME, NOT_FOUND, api_error

if TYPE_CHECKING:
    from hlsconv.conversion.artifacts import ArtifactStore

logger = logging.getLogger(__name__)


async def download_handler(request: web.Request) -> web.StreamResponse:
    """Handle GET /downloads/{filename}.

    Serves the artifact as an attachment so browsers save it instead of
    playing it inline.
    """
    filename = request.match_info["filename"]
    store: ArtifactStore = request.app["store"]

    try:
        path = store.resolve_download(filename)
    except ValueError:
        return api_error("Invalid filename", code=INVALID_FILENAME)
    if path is None:
        return api_error("File not found", code=NOT_FOUND, status=404)

    return web.FileResponse(
        path,
        headers={"Content-Disposition": f'attachment; filename="{path.name}"'},
    )


async def delete_download_handler(request: web.Request) -> web.Response:
    """Handle DELETE /downloads/{filename}.

    Returns:
        200 on success, 400 for names that could escape the downloads
        directory, 404 if no such file exists.
    """
    filename = request.match_info["filename"]
    store: ArtifactStore = request.app["store"]

    outcome = store.delete(filename)
    if outcome is DeleteOutcome.INVALID_NAME:
        return api_error("Invalid filename", code=INVALID_FILENAME)
    if outcome is DeleteOutcome.NOT_FOUND:
        return api_error("File not found", code=NOT_FOUND, status=404)

    return web.json_response(
        {"success": True, "message": f"Deleted {filename}", "filename": filename}
    )


def setup_download_routes(app: web.Application) -> None:
    """Register download routes with the application.

    Both methods share one resource so the filename pattern is matched once.

    Args:
        app: aiohttp Application to configure.
    """
    resource = app.router.add_resource("/downloads/{filename}")
    resource.add_route("GET", download_handler)
    resource.add_route("DELETE", delete_download_handler)
