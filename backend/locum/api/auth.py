"""
Session dependencies.

The auth service issues an httpOnly ``auth_token`` cookie whose value is the
user id; these dependencies turn it into the Actor the core expects.
"""
import logging
from uuid import UUID

from fastapi import Cookie, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.models.user import User
from locum.services.authorization import Actor

logger = logging.getLogger(__name__)


async def get_current_user(
    auth_token: str = Cookie(None),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user from httpOnly cookie.
    
    Raises:
        HTTPException 401: If cookie is missing, malformed or user not found
    """
    if not auth_token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    
    try:
        user_id = UUID(auth_token)
    except ValueError:
        logger.warning(f"Malformed auth token: {auth_token[:40]}")
        raise HTTPException(status_code=401, detail="Invalid token.")
    
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token. User not found.")
    
    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user)
) -> Actor:
    return Actor.from_user(current_user)


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> Actor:
    """
    Dependency to require admin role.
    
    Raises:
        HTTPException 403: If user is not an admin
    """
    if not current_user.is_admin():
        logger.warning(
            f"Non-admin {current_user.email} ({current_user.role.value}) tried an admin-only action"
        )
        raise HTTPException(
            status_code=403,
            detail="Only platform admins can review verifications."
        )
    
    return Actor.from_user(current_user)
