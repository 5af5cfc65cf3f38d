"""Security utilities.

Admin requests carry a Supabase Auth access token. Supabase signs these
with the project's JWT secret (HS256) and audience ``authenticated``.
"""

from typing import Any
from uuid import uuid4

import structlog
from jose import JWTError, jwt

from core.config import settings

logger = structlog.get_logger(__name__)

SUPABASE_JWT_ALGORITHM = "HS256"


def decode_supabase_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a Supabase access token.

    Returns:
        The decoded payload, or None if the token is invalid, expired, or
        the JWT secret is not configured.
    """
    if not settings.SUPABASE_JWT_SECRET:
        logger.error("supabase_jwt_secret_missing")
        return None

    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[SUPABASE_JWT_ALGORITHM],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        return None


def generate_public_token() -> str:
    """Generate the unguessable token used in a survey's public link."""
    return str(uuid4())
