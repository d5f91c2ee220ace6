"""Shared API dependencies for authentication and engine access."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chatchain.core.settings import settings
from chatchain.services.sync_engine import MessageSyncEngine

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the user id carried by a session token.

    Tokens are issued by the session service; this API only verifies them.

    Raises:
        HTTPException: If the token is invalid or carries no subject
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return str(subject)


def get_engine(request: Request) -> MessageSyncEngine:
    """Return the engine built for this process at startup."""
    engine: MessageSyncEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync engine is not ready",
        )
    return engine


# Type aliases for dependencies
CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
EngineDep = Annotated[MessageSyncEngine, Depends(get_engine)]
