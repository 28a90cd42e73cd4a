import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies.agent_auth import (
    agent_error_response,
    agent_json_response,
    cors_preflight_response,
    organization_id_from,
    validate_agent_request,
)
from app.dependencies.clock import request_now
from app.services.agent_api import AGENT_HANDLERS, AgentRequestError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agent", tags=["agent"])


@router.options("/{resource}")
async def agent_preflight(resource: str):
    return cors_preflight_response()


@router.post("/{resource}")
async def agent_action(
    resource: str,
    request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(request_now),
):
    auth_error = validate_agent_request(request)
    if auth_error:
        return agent_error_response(auth_error, 401)

    organization_id = organization_id_from(request)
    if not organization_id:
        return agent_error_response("Organization ID required", 400)

    handlers = AGENT_HANDLERS.get(resource)
    if handlers is None:
        return agent_error_response("Unknown resource", 404)

    try:
        body = await request.json()
    except ValueError:
        return agent_error_response("Invalid JSON body", 400)
    if not isinstance(body, dict):
        return agent_error_response("Invalid JSON body", 400)

    params = dict(body)
    action = params.pop("action", None)
    handler = handlers.get(action or "")
    if handler is None:
        return agent_error_response("Invalid action", 400)

    try:
        payload = handler(db, organization_id, params, now)
    except AgentRequestError as exc:
        return agent_error_response(str(exc), exc.status_code)
    except Exception:
        logger.exception("agent_api: %s/%s failed org=%s", resource, action, organization_id)
        return agent_error_response("Internal server error", 500)

    return agent_json_response(payload)
