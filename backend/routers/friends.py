"""Friends router: add, list, search and remove friends; payment reminders."""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.balances import can_remove_friend, compute_balances, get_friend_balance
from utils.currency import format_currency, to_dollars
from utils.email import is_email_configured, send_payment_reminder_email
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.notifications import notify_users
from utils.validation import are_friends, get_user_by_email, get_user_by_phone, get_user_or_404


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])


@router.post("/add", response_model=schemas.FriendAddResponse)
def add_friend(
    friend_request: schemas.FriendAdd,
    db: Session = Depends(get_db)
):
    current_user = get_user_or_404(db, friend_request.user_id)
    if not friend_request.email and not friend_request.phone:
        raise ValidationError("Either email or phone is required")

    friend_user = None
    if friend_request.email:
        friend_user = get_user_by_email(db, friend_request.email)
    if not friend_user and friend_request.phone:
        friend_user = get_user_by_phone(db, friend_request.phone)

    if not friend_user:
        raise NotFoundError("User not found. They need to sign up first before you can add them as a friend.")

    if friend_user.id == current_user.id:
        raise ValidationError("You cannot add yourself as a friend.")

    if are_friends(db, current_user.id, friend_user.id):
        raise ValidationError(f"{friend_user.name} is already in your friends list.")

    # Stored in both directions
    db.add(models.Friendship(user_id=current_user.id, friend_id=friend_user.id))
    if not are_friends(db, friend_user.id, current_user.id):
        db.add(models.Friendship(user_id=friend_user.id, friend_id=current_user.id))
    notify_users(
        db,
        [friend_user.id],
        f"{current_user.name} added you as a friend",
        type="friend_added",
        data={"friendId": current_user.id}
    )
    db.commit()

    logger.info(f"User {current_user.id} added friend {friend_user.id}")
    return schemas.FriendAddResponse(friend=schemas.User.model_validate(friend_user))


@router.get("", response_model=schemas.FriendsResponse)
def read_friends(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    friends = db.query(models.User).join(
        models.Friendship, models.Friendship.friend_id == models.User.id
    ).filter(
        models.Friendship.user_id == current_user.id
    ).order_by(models.User.name, models.User.id).all()

    return schemas.FriendsResponse(friends=[schemas.User.model_validate(f) for f in friends])


@router.get("/search", response_model=list[schemas.User])
def search_friends(
    current_user: Annotated[models.User, Depends(get_current_user)],
    prefix: str = Query(""),
    db: Session = Depends(get_db)
):
    prefix = prefix.strip()
    if not prefix:
        return []

    pattern = f"{prefix}%"
    return db.query(models.User).join(
        models.Friendship, models.Friendship.friend_id == models.User.id
    ).filter(
        models.Friendship.user_id == current_user.id,
        models.User.name.ilike(pattern) | models.User.phone.ilike(pattern)
    ).order_by(models.User.name, models.User.id).all()


@router.delete("", response_model=schemas.SuccessResponse)
def remove_friend(
    removal: schemas.FriendRemove,
    db: Session = Depends(get_db)
):
    current_user = get_user_or_404(db, removal.user_id)
    friend = get_user_or_404(db, removal.friend_id)

    if not are_friends(db, current_user.id, friend.id):
        raise NotFoundError(f"{friend.name} is not in your friends list")

    # Only a friend who owes the user blocks removal
    if not can_remove_friend(db, current_user.id, friend.id):
        outstanding = get_friend_balance(db, current_user.id, friend.id)
        logger.warning(
            f"Blocked removal of friend {friend.id} by user {current_user.id}: "
            f"{format_currency(outstanding)} outstanding"
        )
        raise ConflictError(
            f"Cannot remove {friend.name}: they still owe you {format_currency(outstanding)}",
            amount=to_dollars(outstanding)
        )

    db.query(models.Friendship).filter(
        ((models.Friendship.user_id == current_user.id) & (models.Friendship.friend_id == friend.id)) |
        ((models.Friendship.user_id == friend.id) & (models.Friendship.friend_id == current_user.id))
    ).delete(synchronize_session=False)
    db.commit()

    logger.info(f"User {current_user.id} removed friend {friend.id}")
    return schemas.SuccessResponse(message="Friend relationship removed successfully")


@router.post("/send-reminder", response_model=schemas.ReminderResponse)
async def send_reminder(
    reminder: schemas.FriendReminder,
    db: Session = Depends(get_db)
):
    current_user = get_user_or_404(db, reminder.user_id)
    friend = get_user_or_404(db, reminder.friend_id)

    balances = compute_balances(db, current_user.id)
    entry = next((b for b in balances["balances"] if b["user_id"] == friend.id), None)
    if not entry or entry["net_balance"] <= 0:
        raise ValidationError(f"{friend.name} doesn't owe you anything")

    amount_cents = get_friend_balance(db, current_user.id, friend.id)
    outstanding = [e for e in entry["expenses"] if e["type"] == "owes_you"]

    email_sent = False
    if is_email_configured():
        email_sent = await send_payment_reminder_email(
            to_email=friend.email,
            to_name=friend.name,
            from_name=current_user.name,
            amount_cents=amount_cents,
            expenses=outstanding
        )
    else:
        logger.warning("Email not configured, payment reminder stored as notification only")

    notify_users(
        db,
        [friend.id],
        f"{current_user.name} reminded you that you owe {format_currency(amount_cents)}",
        type="payment_reminder",
        data={"fromUserId": current_user.id, "amount": to_dollars(amount_cents)}
    )
    db.commit()

    return schemas.ReminderResponse(email_sent=email_sent, amount=to_dollars(amount_cents))
