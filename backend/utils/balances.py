"""Balance calculation: per-friend net balances derived from unpaid splits.

Balances are never stored. Every call re-reads the split rows, so the result
always reflects the latest payment state and two calls over the same rows
return identical output.
"""

from typing import Dict

from sqlalchemy.orm import Session

import models
from utils.currency import to_dollars


OWES_YOU = "owes_you"
YOU_OWE = "you_owe"


def _collect_unpaid(db: Session, user_id: int) -> Dict[int, dict]:
    """
    Aggregate unpaid splits between ``user_id`` and each counterpart, in cents.

    Returns:
        Dictionary mapping counterpart user ID to
        {"owes_you": cents, "you_owe": cents, "expenses": [...]}
    """
    rows = db.query(models.ExpenseSplit, models.Expense).join(
        models.Expense, models.ExpenseSplit.expense_id == models.Expense.id
    ).filter(
        (models.Expense.created_by_id == user_id) | (models.ExpenseSplit.user_id == user_id),
        models.ExpenseSplit.paid == False
    ).order_by(
        models.Expense.created_at.desc(), models.Expense.id.desc(), models.ExpenseSplit.id
    ).all()

    balances = {}
    for split, expense in rows:
        # The payer's own share is not a debt to anyone
        if split.user_id == expense.created_by_id:
            continue

        if expense.created_by_id == user_id:
            counterpart_id = split.user_id
            direction = OWES_YOU
        else:
            counterpart_id = expense.created_by_id
            direction = YOU_OWE

        if counterpart_id not in balances:
            balances[counterpart_id] = {OWES_YOU: 0, YOU_OWE: 0, "expenses": []}
        entry = balances[counterpart_id]
        entry[direction] += split.amount
        entry["expenses"].append({
            "expense_id": expense.id,
            "description": expense.description,
            "amount": to_dollars(split.amount),
            "type": direction,
            "date": expense.created_at.isoformat(),
            "category": expense.category,
        })

    return balances


def compute_balances(db: Session, user_id: int) -> dict:
    """
    Compute what each counterpart owes ``user_id`` and vice versa.

    Entries are ordered by counterpart name then ID. Positive ``net_balance``
    means the counterpart owes the user.

    Returns:
        {"balances": [entry, ...], "summary": {...}} with dollar amounts
    """
    raw = _collect_unpaid(db, user_id)

    names = {}
    if raw:
        users = db.query(models.User).filter(models.User.id.in_(raw.keys())).all()
        names = {u.id: u.name for u in users}

    entries = []
    total_owed_to_you = 0
    total_you_owe = 0
    for counterpart_id, data in raw.items():
        total_owed_to_you += data[OWES_YOU]
        total_you_owe += data[YOU_OWE]
        entries.append({
            "user_id": counterpart_id,
            "user_name": names.get(counterpart_id, f"User {counterpart_id}"),
            "owes_you": to_dollars(data[OWES_YOU]),
            "you_owe": to_dollars(data[YOU_OWE]),
            "net_balance": to_dollars(data[OWES_YOU] - data[YOU_OWE]),
            "expenses": data["expenses"],
        })

    entries.sort(key=lambda e: (e["user_name"], e["user_id"]))

    return {
        "balances": entries,
        "summary": {
            "total_owed_to_you": to_dollars(total_owed_to_you),
            "total_you_owe": to_dollars(total_you_owe),
            "net_balance": to_dollars(total_owed_to_you - total_you_owe),
            "friend_count": len(entries),
        },
    }


def get_friend_balance(db: Session, user_id: int, friend_id: int) -> int:
    """Net cents ``friend_id`` owes ``user_id`` (negative if the user owes the friend)."""
    data = _collect_unpaid(db, user_id).get(friend_id)
    if not data:
        return 0
    return data[OWES_YOU] - data[YOU_OWE]


def can_remove_friend(db: Session, user_id: int, friend_id: int) -> bool:
    """
    Removal is blocked only while the friend owes the user money.

    The reverse case (the user owes the friend) is allowed. Always computed
    from fresh rows at the time of the request.
    """
    return get_friend_balance(db, user_id, friend_id) <= 0
