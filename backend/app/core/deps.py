from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.core.security import decode_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_owner_id(
    token: Annotated[str, Depends(oauth2_scheme)],
) -> UUID:
    """Validate the bearer token and return the account that owns the data.

    Sessions are managed by the web tier; every import and export is scoped
    to the `sub` claim of the access token it hands us.
    """
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        owner_id: str | None = payload.get("sub")
        if not owner_id:
            raise credentials_exc
        return UUID(owner_id)
    except (JWTError, ValueError):
        raise credentials_exc
