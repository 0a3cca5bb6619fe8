"""FastAPI dependencies for admin authentication.

Provides dependency injection functions for FastAPI endpoints to resolve the
operator behind a bearer token.
"""

from typing import Annotated

from fastapi import Header, HTTPException

from menu_display_service.auth.session_validator import SessionValidator

BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of a ``Bearer`` authorization header, if any."""
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


async def get_owner_id_from_header(
    authorization: Annotated[str | None, Header()] = None,
    validator: SessionValidator | None = None,
) -> str:
    """FastAPI dependency to resolve the operator from the Authorization header.

    Args:
        authorization: Authorization header value (injected by FastAPI)
        validator: SessionValidator instance (injected as dependency)

    Returns:
        str: The authenticated operator id

    Raises:
        HTTPException: 401 if the token is missing or the session is invalid
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    owner_id = await validator.resolve_owner(token) if validator else None
    if owner_id is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return owner_id
