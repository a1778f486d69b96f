"""FastAPI dependencies."""
import logging
import re

from fastapi import HTTPException, Request

from mapveto.utils.exceptions import TokenError
from mapveto.utils.tokens import mask_token

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^[0-9a-f]{32}$")


async def get_player_token(token: str) -> str:
    """Validate the shape of a player token taken from the URL path.

    Malformed tokens are rejected before touching the database. Whether the
    token exists or has expired is decided by the services.
    """
    if not TOKEN_PATTERN.match(token or ""):
        logger.info(f"Rejected malformed player token {mask_token(token)}")
        raise HTTPException(status_code=401, detail=TokenError.INVALID_TOKEN)
    return token


def get_client_ip(request: Request) -> str | None:
    """Best-effort client IP, honouring the first hop of X-Forwarded-For."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None
    return request.client.host if request.client else None
