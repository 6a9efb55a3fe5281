"""API route modules for the converter server.

Each module handles a specific area:

- convert.py: Job submission and progress polling
- downloads.py: Artifact download and deletion
- errors.py: Standardized error responses
"""

from aiohttp import web

__all__ = [
    "setup_api_routes",
]


def setup_api_routes(app: web.Application) -> None:
    """Register all API routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    # Imported here: handlers depend on server.middleware, which imports errors
    from hlsconv.server.api.convert import setup_convert_routes
    from hlsconv.server.api.downloads import setup_download_routes

    setup_convert_routes(app)
    setup_download_routes(app)
