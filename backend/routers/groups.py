"""Groups router: create groups, manage members, and record group expenses."""

import logging
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from routers.expenses import build_expense_schema
from utils.currency import to_cents, to_dollars
from utils.errors import ForbiddenError, NotFoundError, ValidationError
from utils.ledger import MemberSelection, settle_group_expense
from utils.notifications import notify_users
from utils.validation import (
    get_group_or_404,
    get_user_or_404,
    validate_users_exist,
    verify_group_membership,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


def list_user_groups(db: Session, user_id: int) -> list[models.Group]:
    """Groups the user belongs to, newest first."""
    return db.query(models.Group).join(
        models.GroupMember,
        models.Group.id == models.GroupMember.group_id
    ).filter(
        models.GroupMember.user_id == user_id
    ).order_by(models.Group.created_at.desc(), models.Group.id.desc()).all()


def build_group_schema(db: Session, group: models.Group) -> schemas.Group:
    members_query = db.query(models.GroupMember, models.User).join(
        models.User, models.GroupMember.user_id == models.User.id
    ).filter(models.GroupMember.group_id == group.id).order_by(models.GroupMember.id).all()

    members = [
        schemas.GroupMember(
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            joined_at=gm.joined_at
        )
        for gm, user in members_query
    ]

    expense_count, total_expenses = db.query(
        func.count(models.Expense.id), func.coalesce(func.sum(models.Expense.amount), 0)
    ).filter(models.Expense.group_id == group.id).one()

    creator = db.query(models.User).filter(models.User.id == group.created_by_id).first()

    return schemas.Group(
        id=group.id,
        name=group.name,
        created_by=group.created_by_id,
        created_by_name=creator.name if creator else "Unknown User",
        created_at=group.created_at,
        members=members,
        member_count=len(members),
        expense_count=expense_count,
        total_expenses=to_dollars(total_expenses)
    )


@router.post("", response_model=schemas.GroupResponse)
def create_group(
    group: schemas.GroupCreate,
    db: Session = Depends(get_db)
):
    creator = get_user_or_404(db, group.user_id)

    # Creator is always a member
    member_ids = [creator.id] + [mid for mid in dict.fromkeys(group.member_ids) if mid != creator.id]
    validate_users_exist(db, member_ids)

    db_group = models.Group(name=group.name, created_by_id=creator.id)
    db.add(db_group)
    db.flush()

    for member_id in member_ids:
        db.add(models.GroupMember(group_id=db_group.id, user_id=member_id))

    notify_users(
        db,
        member_ids[1:],
        f'{creator.name} added you to the group "{db_group.name}"',
        type="group_added",
        data={"groupId": db_group.id}
    )
    db.commit()
    db.refresh(db_group)

    logger.info(f"User {creator.id} created group {db_group.id} with {len(member_ids)} members")
    return schemas.GroupResponse(group=build_group_schema(db, db_group))


@router.get("", response_model=schemas.GroupsResponse)
def read_groups(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    user_groups = list_user_groups(db, current_user.id)

    groups = [build_group_schema(db, g) for g in user_groups]
    return schemas.GroupsResponse(groups=groups, count=len(groups))


@router.get("/{group_id}", response_model=schemas.GroupResponse)
def get_group(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)
    return schemas.GroupResponse(group=build_group_schema(db, group))


@router.post("/{group_id}/members", response_model=schemas.GroupResponse)
def add_group_member(
    group_id: int,
    member_add: schemas.GroupMemberAdd,
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, member_add.user_id)
    new_member = get_user_or_404(db, member_add.member_id)

    existing = db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == new_member.id
    ).first()
    if existing:
        raise ValidationError(f"{new_member.name} is already a member of this group")

    db.add(models.GroupMember(group_id=group_id, user_id=new_member.id))
    notify_users(
        db,
        [new_member.id],
        f'You were added to the group "{group.name}"',
        type="group_added",
        data={"groupId": group.id}
    )
    db.commit()

    return schemas.GroupResponse(group=build_group_schema(db, group))


@router.delete("/{group_id}/members/{member_id}", response_model=schemas.SuccessResponse)
def remove_group_member(
    group_id: int,
    member_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    # Owner can remove anyone except themselves
    # Non-owners can only remove themselves
    if current_user.id != group.created_by_id and current_user.id != member_id:
        raise ForbiddenError("You can only remove yourself from the group")

    if member_id == group.created_by_id:
        raise ValidationError("The group creator cannot be removed from the group")

    member = db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == member_id
    ).first()
    if not member:
        raise NotFoundError("Member not found in this group")

    db.delete(member)
    db.commit()

    return schemas.SuccessResponse(message="Member removed successfully")


@router.get("/{group_id}/expenses", response_model=schemas.GroupExpensesResponse)
def get_group_expenses(
    group_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, current_user.id)

    expenses = db.query(models.Expense).filter(
        models.Expense.group_id == group_id
    ).order_by(models.Expense.created_at.desc(), models.Expense.id.desc()).all()

    if not expenses:
        return schemas.GroupExpensesResponse(expenses=[])

    expense_ids = [e.id for e in expenses]
    all_splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id.in_(expense_ids)
    ).order_by(models.ExpenseSplit.id).all()

    # Group splits by expense_id
    splits_by_expense = {}
    user_ids = {e.created_by_id for e in expenses}
    for split in all_splits:
        splits_by_expense.setdefault(split.expense_id, []).append(split)
        user_ids.add(split.user_id)

    users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(user_ids)).all()}

    def name_of(user_id):
        return users[user_id].name if user_id in users else "Unknown User"

    result = []
    for expense in expenses:
        result.append(schemas.GroupExpense(
            id=expense.id,
            description=expense.description,
            amount=to_dollars(expense.amount),
            category=expense.category,
            created_by=expense.created_by_id,
            created_by_name=name_of(expense.created_by_id),
            created_at=expense.created_at,
            splits=[
                schemas.HistorySplit(
                    user_id=s.user_id,
                    user_name=name_of(s.user_id),
                    amount=to_dollars(s.amount),
                    paid=s.paid
                )
                for s in splits_by_expense.get(expense.id, [])
            ]
        ))

    return schemas.GroupExpensesResponse(expenses=result)


@router.post("/{group_id}/expenses", response_model=schemas.ExpenseResponse)
def create_group_expense(
    group_id: int,
    expense: schemas.GroupExpenseCreate,
    db: Session = Depends(get_db)
):
    get_user_or_404(db, expense.user_id)

    members = [
        MemberSelection(
            user_id=m.user_id,
            selected=m.selected,
            amount=to_cents(m.amount) if m.amount is not None else None
        )
        for m in expense.members
    ]

    db_expense = settle_group_expense(
        db,
        group_id=group_id,
        payer_id=expense.user_id,
        amount=to_cents(expense.amount),
        category=expense.category,
        members=members,
        split_type=expense.split_type,
        description=expense.description,
        subcategory=expense.subcategory,
    )
    return schemas.ExpenseResponse(expense=build_expense_schema(db_expense))
