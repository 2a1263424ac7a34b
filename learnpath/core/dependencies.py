"""Shared FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> UUID:
    """Acting user id, set by the upstream authentication gateway.

    Raises:
        HTTPException 401: Header missing or not a UUID
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    try:
        return UUID(x_user_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-ID header",
        ) from e


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
