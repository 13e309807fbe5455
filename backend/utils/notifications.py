"""In-app notification sink.

Notifications are added to the caller's session and committed together with
whatever ledger change produced them, so a rolled-back expense never leaves
behind a "you owe" message.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

import models


logger = logging.getLogger(__name__)


def notify_users(
    db: Session,
    user_ids: Iterable[int],
    message: str,
    type: str = "general",
    data: Optional[dict] = None
) -> list[models.Notification]:
    """Queue one notification per user. Does not commit."""
    notifications = []
    for user_id in user_ids:
        notification = models.Notification(
            user_id=user_id,
            type=type,
            message=message,
            data=data,
            is_read=False
        )
        db.add(notification)
        notifications.append(notification)

    if notifications:
        logger.info(f"Queued {type} notification for users {[n.user_id for n in notifications]}")
    return notifications


def list_notifications(db: Session, user_id: int) -> list[models.Notification]:
    return db.query(models.Notification).filter(
        models.Notification.user_id == user_id
    ).order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).all()
