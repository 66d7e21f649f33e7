"""Request dependencies: caller identity and role checks."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.database import get_db
from taxportal.exceptions import Forbidden, NotFound
from taxportal.models.db_models import User

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated caller from the X-User-Id header set by the auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        logger.warning(f"User {user.id} denied access to a staff route")
        raise Forbidden("Staff access required")
    return user


async def get_client(
    client_id: UUID,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Staff routes addressing one client by path id."""
    client = await db.get(User, client_id)
    if client is None:
        raise NotFound("Client not found")
    return client
