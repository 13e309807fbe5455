"""Notifications router: list and mark in-app notifications as read."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.errors import ForbiddenError, NotFoundError
from utils.notifications import list_notifications
from utils.validation import get_user_or_404


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.NotificationsResponse)
def read_notifications(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    notifications = list_notifications(db, current_user.id)
    return schemas.NotificationsResponse(
        notifications=[schemas.Notification.model_validate(n) for n in notifications],
        unread_count=sum(1 for n in notifications if not n.is_read)
    )


@router.post("/read-all", response_model=schemas.SuccessResponse)
def mark_all_read(
    context: schemas.UserContext,
    db: Session = Depends(get_db)
):
    user = get_user_or_404(db, context.user_id)
    updated = db.query(models.Notification).filter(
        models.Notification.user_id == user.id,
        models.Notification.is_read == False
    ).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return schemas.SuccessResponse(message=f"Marked {updated} notifications as read")


@router.post("/{notification_id}/read", response_model=schemas.SuccessResponse)
def mark_read(
    notification_id: int,
    context: schemas.UserContext,
    db: Session = Depends(get_db)
):
    notification = db.query(models.Notification).filter(
        models.Notification.id == notification_id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.user_id != context.user_id:
        raise ForbiddenError("You can only update your own notifications")

    notification.is_read = True
    db.commit()
    return schemas.SuccessResponse(message="Notification marked as read")
