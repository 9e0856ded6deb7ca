"""
Notification inbox endpoints. Every route is scoped to the current user.
"""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from locum.database import get_db
from locum.api.auth import get_current_actor
from locum.api.errors import unwrap
from locum.models.notification import NotificationType
from locum.schemas.notification import MarkAllReadResponse, NotificationResponse, UnreadCountResponse
from locum.services.authorization import Actor
from locum.services.notifications import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    NotificationFilter,
    delete_notification,
    list_notifications,
    mark_all_read,
    mark_read,
    unread_count,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[NotificationResponse])
async def inbox(
    is_read: Optional[bool] = Query(None),
    type: Optional[NotificationType] = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Newest first."""
    filters = NotificationFilter(is_read=is_read, type=type, limit=limit, offset=offset)
    return await list_notifications(db, actor, filters)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return UnreadCountResponse(unread_count=await unread_count(db, actor))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def read_all(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    outcome = unwrap(await mark_all_read(db, actor))
    return MarkAllReadResponse(updated=outcome.entity)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Idempotent: reading twice is fine."""
    outcome = unwrap(await mark_read(db, notification_id, actor))
    return outcome.entity


@router.delete("/{notification_id}", status_code=204)
async def remove(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    unwrap(await delete_notification(db, notification_id, actor))
    return Response(status_code=204)
