import logging

import bcrypt

from app.core.config import settings

logger = logging.getLogger(__name__)

BCRYPT_MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str | None) -> bytes:
    raw = (password or "").encode("utf-8")
    if len(raw) > BCRYPT_MAX_PASSWORD_BYTES:
        logger.warning("passwords: input exceeds %d bytes, truncating", BCRYPT_MAX_PASSWORD_BYTES)
        raw = raw[:BCRYPT_MAX_PASSWORD_BYTES]
    return raw


def hash_password(password: str, *, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, stored_hash: str | None) -> bool:
    if not stored_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), stored_hash.strip().encode("utf-8"))
    except ValueError as exc:
        # malformed or non-bcrypt hash
        logger.debug("passwords: verify failed: %s", exc)
        return False
