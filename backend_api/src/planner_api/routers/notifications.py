import logging
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from .. import config
from ..db import get_session
from ..models import Notification, User, utcnow
from ..schemas import NotificationCreate, NotificationRead, PurgeResult, SuccessResponse, UnreadCount
from ..security import get_current_user

logger = logging.getLogger(__name__)

notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_read(n: Notification) -> NotificationRead:
    return NotificationRead(
        id=n.id,
        title=n.title,
        message=n.message,
        type=n.notification_type,
        is_read=n.is_read,
        action_url=n.action_url,
        action_text=n.action_text,
        expires_at=n.expires_at,
        created_at=n.created_at,
    )


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _unexpired(now: datetime):
    return or_(col(Notification.expires_at).is_(None), col(Notification.expires_at) >= now)


def _get_owned(session: Session, user_id: int, notification_id: int) -> Notification:
    obj = session.get(Notification, notification_id)
    if not obj or obj.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return obj


# PUBLIC_INTERFACE
@notifications_router.get(
    "",
    response_model=List[NotificationRead],
    summary="List notifications",
    description="Unexpired notifications, newest first.",
)
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[NotificationRead]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user.id, _unexpired(utcnow()))
        .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
        .limit(limit)
    )
    return [_notification_read(n) for n in session.exec(stmt)]


# PUBLIC_INTERFACE
@notifications_router.get("/unread-count", response_model=UnreadCount, summary="Count unread notifications")
def unread_count(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> UnreadCount:
    stmt = select(func.count(Notification.id)).where(
        Notification.user_id == user.id,
        col(Notification.is_read).is_(False),
        _unexpired(utcnow()),
    )
    return UnreadCount(count=session.exec(stmt).one())


# PUBLIC_INTERFACE
@notifications_router.post(
    "",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification",
)
def create_notification(
    payload: NotificationCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> NotificationRead:
    now = utcnow()
    expires_at = payload.expires_at
    if expires_at is None:
        expires_at = now + timedelta(days=config.NOTIFICATION_TTL_DAYS)
    obj = Notification(
        user_id=user.id,
        title=payload.title,
        message=payload.message,
        notification_type=payload.type,
        action_url=payload.action_url,
        action_text=payload.action_text,
        expires_at=_naive_utc(expires_at),
        created_at=now,
        updated_at=now,
    )
    session.add(obj)
    session.commit()
    session.refresh(obj)
    logger.info("Created %s notification %s for user %s", obj.notification_type, obj.id, user.id)
    return _notification_read(obj)


# PUBLIC_INTERFACE
@notifications_router.put("/read-all", response_model=SuccessResponse, summary="Mark all notifications read")
def mark_all_read(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    now = utcnow()
    unread = session.exec(
        select(Notification).where(Notification.user_id == user.id, col(Notification.is_read).is_(False))
    ).all()
    for n in unread:
        n.is_read = True
        n.updated_at = now
        session.add(n)
    session.commit()
    return SuccessResponse()


# PUBLIC_INTERFACE
@notifications_router.put("/{notification_id}/read", response_model=NotificationRead, summary="Mark notification read")
def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> NotificationRead:
    obj = _get_owned(session, user.id, notification_id)
    obj.is_read = True
    obj.updated_at = utcnow()
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return _notification_read(obj)


# PUBLIC_INTERFACE
@notifications_router.delete(
    "/expired",
    response_model=PurgeResult,
    summary="Purge expired notifications",
    description="Deletes the caller's notifications whose expiry has passed and returns how many were removed.",
)
def purge_expired(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> PurgeResult:
    stmt = select(Notification).where(
        Notification.user_id == user.id,
        col(Notification.expires_at).is_not(None),
        col(Notification.expires_at) < utcnow(),
    )
    expired = session.exec(stmt).all()
    for n in expired:
        session.delete(n)
    session.commit()
    removed = len(expired)
    logger.info("Purged %s expired notifications for user %s", removed, user.id)
    return PurgeResult(removed=removed)


# PUBLIC_INTERFACE
@notifications_router.delete("/{notification_id}", response_model=SuccessResponse, summary="Delete notification")
def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SuccessResponse:
    obj = _get_owned(session, user.id, notification_id)
    session.delete(obj)
    session.commit()
    return SuccessResponse()
