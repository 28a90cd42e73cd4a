import logging
import re
from typing import Any

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)


def normalize_phone(raw: str | None) -> str | None:
    """Digits only, international format without '+'; None when too short to dial."""
    digits = re.sub(r"\D", "", raw or "")
    if digits.startswith("00"):
        digits = digits[2:]
    if len(digits) < 8:
        return None
    return digits


def _gateway_headers() -> dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    token = (settings.WHATSAPP_API_TOKEN or "").strip()
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def send_whatsapp_message(phone: str | None, body: str) -> dict[str, Any]:
    api_url = (settings.WHATSAPP_API_URL or "").strip()
    if not api_url:
        logger.warning("whatsapp: gateway url not configured")
        return {"ok": False, "message": "whatsapp_not_configured"}

    number = normalize_phone(phone)
    if not number:
        return {"ok": False, "message": "invalid_phone_number"}

    timeout_seconds = max(int(settings.WHATSAPP_TIMEOUT_SECONDS or 15), 1)
    try:
        response = requests.post(
            api_url.rstrip("/") + "/send",
            json={"phone": number, "message": body},
            headers=_gateway_headers(),
            timeout=timeout_seconds,
        )
    except requests.RequestException as exc:
        logger.warning("whatsapp: request failed phone=%s error=%s", number, exc)
        return {"ok": False, "message": "whatsapp_request_failed", "error": str(exc)}

    if response.status_code >= 400:
        logger.warning("whatsapp: gateway rejected phone=%s status=%s", number, response.status_code)
        return {"ok": False, "message": "whatsapp_gateway_error", "status_code": response.status_code}

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    return {"ok": True, "message_id": payload.get("id") or payload.get("messageId")}
