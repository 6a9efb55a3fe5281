"""Conversion API handlers.

Endpoints:
    POST /convert            - Start a conversion job
    GET  /progress/{job_id}  - Poll a job's current state
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from hlsconv.conversion.exceptions import EngineUnavailableError, ValidationError
from hlsconv.conversion.orchestrator import ConversionRequest
from hlsconv.server.api.errors import (
    ENGINE_UNAVAILABLE,
    INVALID_JSON,
    VALIDATION_FAILED,
    api_error,
)
from hlsconv.server.middleware import shutdown_check_middleware

if TYPE_CHECKING:
    from hlsconv.config.models import ConverterConfig
    from hlsconv.conversion.orchestrator import ConversionOrchestrator
    from hlsconv.conversion.registry import JobRegistry

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "Conversion started"


class ConvertRequestModel(BaseModel):
    """Body of POST /convert.

    Required fields are optional here so that a missing field is reported
    by the orchestrator with the same message as an empty one.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, allow_inf_nan=False)

    m3u8_url: str | None = None
    filename: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    quality: str | None = None

    def to_request(self) -> ConversionRequest:
        """Convert to the orchestrator's request type."""
        return ConversionRequest(
            input_url=self.m3u8_url,
            filename=self.filename,
            start_time=self.start_time,
            end_time=self.end_time,
            quality=self.quality,
        )


def _format_validation_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """Reduce pydantic errors to field/message pairs for the client."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def _base_url(request: web.Request) -> str:
    """Origin used in download URLs."""
    config: ConverterConfig = request.app["config"]
    if config.server.public_base_url:
        return config.server.public_base_url
    return str(request.url.origin())


@shutdown_check_middleware
async def convert_handler(request: web.Request) -> web.Response:
    """Handle POST /convert.

    Returns 202 as soon as the background job is scheduled; the conversion
    itself is observed through GET /progress/{job_id}.

    Args:
        request: aiohttp Request object.

    Returns:
        JSON response with the new job id and its progress URL.
    """
    try:
        payload = await request.json()
    except ValueError:
        return api_error("Invalid JSON payload", code=INVALID_JSON)

    try:
        body = ConvertRequestModel.model_validate(payload)
    except PydanticValidationError as e:
        return api_error(
            "Invalid request body",
            code=VALIDATION_FAILED,
            details=_format_validation_errors(e),
        )

    orchestrator: ConversionOrchestrator = request.app["orchestrator"]
    try:
        job_id = orchestrator.submit(body.to_request(), base_url=_base_url(request))
    except ValidationError as e:
        return api_error(str(e), code=VALIDATION_FAILED, details={"fields": e.fields})
    except EngineUnavailableError as e:
        logger.error("Rejected conversion: %s", e)
        return api_error(str(e), code=ENGINE_UNAVAILABLE, status=500)

    return web.json_response(
        {
            "success": True,
            "job_id": job_id,
            "message": ACCEPTED_MESSAGE,
            "progress_url": f"/progress/{job_id}",
        },
        status=202,
    )


async def progress_handler(request: web.Request) -> web.Response:
    """Handle GET /progress/{job_id}.

    Unknown and expired ids are answered with status "not_found" and
    HTTP 200; polling them is not an error.
    """
    job_id = request.match_info["job_id"]
    registry: JobRegistry = request.app["registry"]
    return web.json_response(registry.get(job_id).to_dict())


def setup_convert_routes(app: web.Application) -> None:
    """Register conversion routes with the application.

    Args:
        app: aiohttp Application to configure.
    """
    app.router.add_post("/convert", convert_handler)
    app.router.add_get("/progress/{job_id}", progress_handler)
