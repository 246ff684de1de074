from typing import Optional

from fastapi import Cookie

from app.auth.jwt import verify_token
from app.blog.schemas import AuthorRef
from app.config import get_settings

settings = get_settings()


async def get_session_token(
    token: Optional[str] = Cookie(None, alias=settings.COOKIE_NAME)
) -> Optional[str]:
    """Raw session token from the HTTP-only cookie, if any"""
    return token


async def get_optional_author(
    token: Optional[str] = Cookie(None, alias=settings.COOKIE_NAME)
) -> Optional[AuthorRef]:
    """Author identity from a valid session cookie; None when absent or invalid"""
    if not token:
        return None

    payload = verify_token(token)
    if not payload or not payload.get("_id"):
        return None

    return AuthorRef(
        id=str(payload["_id"]),
        name=payload.get("name"),
        username=payload.get("username"),
    )
