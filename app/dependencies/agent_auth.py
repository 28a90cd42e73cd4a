"""
API-key authentication for the external agent, plus its CORS headers.
"""
import hmac
import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from app.core.config import settings

logger = logging.getLogger(__name__)


def agent_cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.AGENT_URL,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, x-api-key, x-organization-id",
        "Access-Control-Max-Age": "86400",
    }


def agent_json_response(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=data, headers=agent_cors_headers())


def agent_error_response(error: str, status_code: int = 401) -> JSONResponse:
    return agent_json_response({"error": error}, status_code=status_code)


def cors_preflight_response() -> Response:
    return Response(status_code=204, headers=agent_cors_headers())


def validate_agent_request(request: Request) -> str | None:
    """Return an error message when the request is not from the agent, else None."""
    expected = (settings.AGENT_API_KEY or "").strip()
    if not expected:
        logger.warning("agent_auth: AGENT_API_KEY is not configured")
        return "Agent API not configured"

    provided = (request.headers.get("x-api-key") or "").strip()
    if not provided or not hmac.compare_digest(provided, expected):
        return "Invalid API key"
    return None


def organization_id_from(request: Request) -> str | None:
    return (request.headers.get("x-organization-id") or "").strip() or None
