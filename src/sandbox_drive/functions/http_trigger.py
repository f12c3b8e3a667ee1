"""HTTP trigger blueprint — service health, gateway status and connection test endpoints."""

import json
import logging

import azure.functions as func

from sandbox_drive import __version__
from sandbox_drive.config import load_config
from sandbox_drive.orchestration.session import drive_session_from_config

logger = logging.getLogger(__name__)

bp = func.Blueprint()


def _error_response() -> func.HttpResponse:
    error_body = json.dumps({"status": "error", "message": "Internal server error"})
    return func.HttpResponse(error_body, status_code=500, mimetype="application/json")


@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint. Returns service status and version."""
    logger.info("[health_check] health check requested")

    try:
        body = json.dumps({"status": "ok", "version": __version__})
        return func.HttpResponse(body, status_code=200, mimetype="application/json")

    except Exception:
        logger.error("[health_check] health check failed", exc_info=True)
        return _error_response()


@bp.route(route="gateway/status", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
async def gateway_status(req: func.HttpRequest) -> func.HttpResponse:
    """Classify the configured storage gateway against the expected version.

    Always answers 200 with the compatibility state; gateway failures are
    states, not errors.
    """
    logger.info("[gateway_status] gateway status requested")

    try:
        session = drive_session_from_config(load_config())
        state = await session.check_gateway()
        monitor = session.monitor
        body = json.dumps(
            {
                "state": state.value,
                "expected_version": monitor.expected_version,
                "remote_version": monitor.remote_version,
            }
        )
        return func.HttpResponse(body, status_code=200, mimetype="application/json")

    except Exception:
        logger.error("[gateway_status] gateway status failed", exc_info=True)
        return _error_response()


@bp.route(route="gateway/test", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
async def gateway_test(req: func.HttpRequest) -> func.HttpResponse:
    """Connection test — lists the shared root folder through the gateway."""
    logger.info("[gateway_test] connection test requested")

    try:
        session = drive_session_from_config(load_config())
        probe = await session.test_connection()
        body = json.dumps(
            {"success": probe.success, "message": probe.message, "file_count": probe.file_count}
        )
        return func.HttpResponse(body, status_code=200, mimetype="application/json")

    except Exception:
        logger.error("[gateway_test] connection test failed", exc_info=True)
        return _error_response()
