"""Expenses router: create expenses, pay shares, view history and details."""

from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.analytics import spending_history
from utils.currency import to_cents, to_dollars
from utils.ledger import create_expense as ledger_create_expense, pay_share
from utils.validation import get_expense_or_404, get_user_or_404, verify_expense_access


router = APIRouter(prefix="/expenses", tags=["expenses"])


def build_expense_schema(expense: models.Expense) -> schemas.Expense:
    return schemas.Expense(
        id=expense.id,
        description=expense.description,
        total_amount=to_dollars(expense.amount),
        category=expense.category,
        subcategory=expense.subcategory,
        created_by=expense.created_by_id,
        group_id=expense.group_id,
        split_type=expense.split_type,
        created_at=expense.created_at,
        splits=[
            schemas.ExpenseSplit(user_id=s.user_id, amount=to_dollars(s.amount), paid=s.paid)
            for s in expense.splits
        ]
    )


def build_split_details(
    db: Session,
    expense: models.Expense,
    splits: list[models.ExpenseSplit]
) -> list[schemas.SplitDetail]:
    """Splits with participant names and their percentage of the expense total."""
    user_ids = {s.user_id for s in splits}
    users = {}
    if user_ids:
        users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(user_ids)).all()}

    return [
        schemas.SplitDetail(
            user_id=s.user_id,
            user_name=users[s.user_id].name if s.user_id in users else "Unknown User",
            amount=to_dollars(s.amount),
            percentage=round(s.amount / expense.amount * 100, 2),
            paid=s.paid
        )
        for s in splits
    ]


@router.post("/create", response_model=schemas.ExpenseResponse)
def create_expense(
    expense: schemas.ExpenseCreate,
    db: Session = Depends(get_db)
):
    custom_splits = None
    if expense.custom_splits is not None:
        custom_splits = [(s.user_id, to_cents(s.amount)) for s in expense.custom_splits]

    db_expense = ledger_create_expense(
        db,
        payer_id=expense.user_id,
        amount=to_cents(expense.amount),
        category=expense.category,
        participants=expense.participants,
        split_type=expense.split_type,
        custom_splits=custom_splits,
        description=expense.description,
        subcategory=expense.subcategory,
        group_id=expense.group_id,
    )
    return schemas.ExpenseResponse(expense=build_expense_schema(db_expense))


@router.get("/history", response_model=schemas.HistoryResponse)
def read_expense_history(
    current_user: Annotated[models.User, Depends(get_current_user)],
    timeframe: str = Query("recent"),
    category: Optional[str] = Query(None),
    friend_id: Optional[int] = Query(None, alias="friendId"),
    limit: int = Query(20),
    db: Session = Depends(get_db)
):
    expenses = spending_history(
        db,
        current_user.id,
        timeframe=timeframe,
        category=category,
        friend_id=friend_id,
        limit=limit
    )
    return schemas.HistoryResponse(expenses=expenses)


@router.get("/{expense_id}", response_model=schemas.ExpenseResponse)
def get_expense(
    expense_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    expense = get_expense_or_404(db, expense_id)
    verify_expense_access(db, expense, current_user.id)
    return schemas.ExpenseResponse(expense=build_expense_schema(expense))


@router.post("/{expense_id}/pay", response_model=schemas.PayShareResponse)
def pay_expense_share(
    expense_id: int,
    payment: schemas.PayShareRequest,
    db: Session = Depends(get_db)
):
    get_user_or_404(db, payment.user_id)
    splits = pay_share(db, expense_id, payment.user_id, payment.split_user_id)
    expense = get_expense_or_404(db, expense_id)
    return schemas.PayShareResponse(splits=build_split_details(db, expense, splits))
