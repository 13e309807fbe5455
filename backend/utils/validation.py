"""Lookup and access-control helpers shared by the ledger and the routers."""

from sqlalchemy.orm import Session

import models
from utils.errors import ForbiddenError, NotFoundError


def get_user_by_email(db: Session, email: str):
    """Get a user by their email address (case-insensitive)."""
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def get_user_by_phone(db: Session, phone: str):
    """Get a user by their phone number."""
    return db.query(models.User).filter(models.User.phone == phone.strip()).first()


def get_user_or_404(db: Session, user_id: int):
    """Get a user by ID or raise NotFoundError."""
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def get_group_or_404(db: Session, group_id: int):
    """Get a group by ID or raise NotFoundError."""
    group = db.query(models.Group).filter(models.Group.id == group_id).first()
    if not group:
        raise NotFoundError("Group not found")
    return group


def get_expense_or_404(db: Session, expense_id: int):
    """Get an expense by ID or raise NotFoundError."""
    expense = db.query(models.Expense).filter(models.Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def get_group_member_ids(db: Session, group_id: int) -> set[int]:
    rows = db.query(models.GroupMember.user_id).filter(models.GroupMember.group_id == group_id).all()
    return {row.user_id for row in rows}


def verify_group_membership(db: Session, group_id: int, user_id: int):
    """Verify that a user is a member of a group, raise ForbiddenError if not."""
    member = db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == user_id
    ).first()
    if not member:
        raise ForbiddenError("You are not a member of this group")
    return member


def validate_users_exist(db: Session, user_ids: list[int]) -> dict[int, models.User]:
    """Batch fetch users, raising NotFoundError naming the first missing ID."""
    if not user_ids:
        return {}
    users = db.query(models.User).filter(models.User.id.in_(set(user_ids))).all()
    users_by_id = {u.id: u for u in users}
    for user_id in user_ids:
        if user_id not in users_by_id:
            raise NotFoundError(f"User with ID {user_id} not found")
    return users_by_id


def are_friends(db: Session, user_id: int, friend_id: int) -> bool:
    return db.query(models.Friendship).filter(
        models.Friendship.user_id == user_id,
        models.Friendship.friend_id == friend_id
    ).first() is not None


def verify_expense_access(db: Session, expense: models.Expense, user_id: int) -> None:
    """Payer, split participants and members of the expense's group may view it."""
    if expense.created_by_id == user_id:
        return
    in_splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id == expense.id,
        models.ExpenseSplit.user_id == user_id
    ).first()
    if in_splits:
        return
    if expense.group_id and db.query(models.GroupMember).filter(
        models.GroupMember.group_id == expense.group_id,
        models.GroupMember.user_id == user_id
    ).first():
        return
    raise ForbiddenError("You don't have access to this expense")
