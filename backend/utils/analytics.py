"""Read-only spending projections over expenses and splits."""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

import models
from utils.currency import to_dollars
from utils.errors import ValidationError


TIMEFRAMES = ("this_week", "this_month", "last_month", "this_year", "last_30_days", "all_time", "recent")

VIEW_SHARE = "share"  # the user's own split amounts
VIEW_PAID = "paid"    # totals of expenses the user paid for
VIEWS = (VIEW_SHARE, VIEW_PAID)

MAX_HISTORY_LIMIT = 100


def resolve_timeframe(timeframe: str, now: Optional[datetime] = None) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn a timeframe keyword into a [start, end) window.

    ``all_time`` and ``recent`` have no bounds. Raises ValidationError for
    unknown keywords.
    """
    now = now or datetime.utcnow()
    timeframe = (timeframe or "all_time").lower()
    month_start = datetime(now.year, now.month, 1)

    if timeframe == "this_week":
        return now - timedelta(days=7), None
    if timeframe == "this_month":
        return month_start, None
    if timeframe == "last_month":
        prev_month_end = month_start - timedelta(days=1)
        return datetime(prev_month_end.year, prev_month_end.month, 1), month_start
    if timeframe == "this_year":
        return datetime(now.year, 1, 1), None
    if timeframe == "last_30_days":
        return now - timedelta(days=30), None
    if timeframe in ("all_time", "recent"):
        return None, None
    raise ValidationError(f"Timeframe must be one of {list(TIMEFRAMES)}")


def _apply_window(query, start, end):
    if start is not None:
        query = query.filter(models.Expense.created_at >= start)
    if end is not None:
        query = query.filter(models.Expense.created_at < end)
    return query


def spending_by_category(
    db: Session,
    user_id: int,
    timeframe: str = "this_month",
    view: str = VIEW_SHARE,
    now: Optional[datetime] = None
) -> list[dict]:
    """
    Group a user's spending by category, with a subcategory breakdown.

    ``share`` sums the user's own split amounts across every expense they're
    part of; ``paid`` sums the full totals of expenses the user created.
    Rows are ordered by total descending, then category name.
    """
    view = (view or VIEW_SHARE).lower()
    if view not in VIEWS:
        raise ValidationError(f"View must be one of {list(VIEWS)}")
    start, end = resolve_timeframe(timeframe, now)

    if view == VIEW_SHARE:
        query = db.query(
            models.Expense.category,
            models.Expense.subcategory,
            func.sum(models.ExpenseSplit.amount),
            func.count(models.Expense.id)
        ).join(
            models.ExpenseSplit, models.ExpenseSplit.expense_id == models.Expense.id
        ).filter(models.ExpenseSplit.user_id == user_id)
    else:
        query = db.query(
            models.Expense.category,
            models.Expense.subcategory,
            func.sum(models.Expense.amount),
            func.count(models.Expense.id)
        ).filter(models.Expense.created_by_id == user_id)

    query = _apply_window(query, start, end)
    rows = query.group_by(models.Expense.category, models.Expense.subcategory).all()

    categories = {}
    for category, subcategory, total, count in rows:
        key = (category or "other").lower()
        if key not in categories:
            categories[key] = {"total": 0, "count": 0, "breakdown": {}}
        entry = categories[key]
        entry["total"] += total or 0
        entry["count"] += count
        sub_key = subcategory or "other"
        sub = entry["breakdown"].setdefault(sub_key, {"total": 0, "count": 0})
        sub["total"] += total or 0
        sub["count"] += count

    result = []
    for category, entry in categories.items():
        breakdown = sorted(entry["breakdown"].items(), key=lambda item: (-item[1]["total"], item[0]))
        result.append({
            "category": category,
            "total": to_dollars(entry["total"]),
            "transaction_count": entry["count"],
            "breakdown": [
                {"subcategory": name, "total": to_dollars(sub["total"]), "transaction_count": sub["count"]}
                for name, sub in breakdown
            ],
        })
    result.sort(key=lambda r: (-r["total"], r["category"]))
    return result


def spending_history(
    db: Session,
    user_id: int,
    timeframe: str = "recent",
    category: Optional[str] = None,
    friend_id: Optional[int] = None,
    limit: int = 20,
    now: Optional[datetime] = None
) -> list[dict]:
    """
    List expenses visible to a user, newest first.

    Visible means the user paid, has a split, or belongs to the expense's
    group. ``userAmount`` is the user's own share (0 if they have none).
    """
    if limit <= 0 or limit > MAX_HISTORY_LIMIT:
        raise ValidationError(f"Limit must be between 1 and {MAX_HISTORY_LIMIT}")
    start, end = resolve_timeframe(timeframe, now)

    my_splits = select(models.ExpenseSplit.expense_id).where(
        models.ExpenseSplit.user_id == user_id
    )
    my_groups = select(models.GroupMember.group_id).where(
        models.GroupMember.user_id == user_id
    )

    query = db.query(models.Expense).filter(
        (models.Expense.created_by_id == user_id) |
        (models.Expense.id.in_(my_splits)) |
        (models.Expense.group_id.in_(my_groups))
    )
    query = _apply_window(query, start, end)

    if category:
        query = query.filter(func.lower(models.Expense.category) == category.strip().lower())
    if friend_id is not None:
        friend_splits = select(models.ExpenseSplit.expense_id).where(
            models.ExpenseSplit.user_id == friend_id
        )
        query = query.filter(
            (models.Expense.created_by_id == friend_id) | (models.Expense.id.in_(friend_splits))
        )

    expenses = query.order_by(
        models.Expense.created_at.desc(), models.Expense.id.desc()
    ).limit(limit).all()
    if not expenses:
        return []

    expense_ids = [e.id for e in expenses]
    all_splits = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id.in_(expense_ids)
    ).order_by(models.ExpenseSplit.id).all()

    splits_by_expense = {}
    user_ids = {e.created_by_id for e in expenses}
    for split in all_splits:
        splits_by_expense.setdefault(split.expense_id, []).append(split)
        user_ids.add(split.user_id)

    users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(user_ids)).all()}
    group_ids = {e.group_id for e in expenses if e.group_id}
    groups = {}
    if group_ids:
        groups = {g.id: g for g in db.query(models.Group).filter(models.Group.id.in_(group_ids)).all()}

    result = []
    for expense in expenses:
        expense_splits = splits_by_expense.get(expense.id, [])
        mine = next((s for s in expense_splits if s.user_id == user_id), None)
        creator = users.get(expense.created_by_id)
        group = groups.get(expense.group_id)
        result.append({
            "id": expense.id,
            "description": expense.description,
            "category": expense.category,
            "subcategory": expense.subcategory,
            "total_amount": to_dollars(expense.amount),
            "user_amount": to_dollars(mine.amount) if mine else 0.0,
            "paid": mine.paid if mine else False,
            "created_at": expense.created_at,
            "created_by": expense.created_by_id,
            "created_by_name": creator.name if creator else "Unknown User",
            "group_id": expense.group_id,
            "group_name": group.name if group else None,
            "splits": [
                {
                    "user_id": s.user_id,
                    "user_name": users[s.user_id].name if s.user_id in users else "Unknown User",
                    "amount": to_dollars(s.amount),
                    "paid": s.paid,
                }
                for s in expense_splits
            ],
        })
    return result
