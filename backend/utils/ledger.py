"""Ledger write operations: expense creation, share payment, group expenses.

Amounts here are integer cents. Callers convert API dollars with
``utils.currency.to_cents`` before calling in.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
from utils.currency import format_currency, to_dollars
from utils.errors import ForbiddenError, NotFoundError, ValidationError
from utils.notifications import notify_users
from utils.splits import (
    PAYER_AS_GIVEN,
    SPLIT_CUSTOM,
    SPLIT_EQUAL,
    SPLIT_TYPES,
    calculate_equal_splits,
    resolve_equal_participants,
    validate_custom_splits,
)
from utils.validation import (
    get_expense_or_404,
    get_group_member_ids,
    get_group_or_404,
    validate_users_exist,
    verify_group_membership,
)


logger = logging.getLogger(__name__)


@dataclass
class MemberSelection:
    """One row of the group expense dialog: a member, whether they're ticked, and their custom share."""
    user_id: int
    selected: bool = True
    amount: Optional[int] = None


def _check_distinct(user_ids: list[int]) -> None:
    seen = set()
    for user_id in user_ids:
        if user_id in seen:
            raise ValidationError(f"User {user_id} appears more than once in the participants")
        seen.add(user_id)


def create_expense(
    db: Session,
    payer_id: int,
    amount: int,
    category: str,
    participants: list[int],
    split_type: str = SPLIT_EQUAL,
    custom_splits: Optional[list[tuple[int, int]]] = None,
    description: str = "",
    subcategory: Optional[str] = None,
    group_id: Optional[int] = None,
    payer_policy: Optional[str] = None,
) -> models.Expense:
    """
    Record an expense paid by ``payer_id`` and divide it among participants.

    The expense row, one split per participant and the "you owe" notifications
    are written in a single transaction: if anything fails, nothing is kept.

    Args:
        db: Database session
        payer_id: User who paid and owns the expense
        amount: Total in cents, must be positive
        category: Spending category (defaults to "other" when blank)
        participants: Distinct user IDs sharing the expense. For custom splits
            this may be empty, in which case the custom split users are used.
        split_type: "equal" or "custom"
        custom_splits: (user_id, amount_cents) pairs, required for custom splits
        group_id: Optional group; the payer and every participant must be members
        payer_policy: Overrides PAYER_SHARE_POLICY for equal splits

    Returns:
        The persisted Expense; its ``splits`` relationship holds the shares.
    """
    split_type = (split_type or SPLIT_EQUAL).lower()
    if split_type not in SPLIT_TYPES:
        raise ValidationError(f"Split type must be one of {list(SPLIT_TYPES)}")
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")

    participants = list(participants or [])
    _check_distinct(participants)

    if split_type == SPLIT_CUSTOM:
        if not custom_splits:
            raise ValidationError("Custom splits are required for a custom split expense")
        custom_ids = [user_id for user_id, _ in custom_splits]
        _check_distinct(custom_ids)
        if participants and set(participants) != set(custom_ids):
            raise ValidationError("Custom splits must cover exactly the selected participants")
        validate_custom_splits(amount, custom_splits)
        shares = list(custom_splits)
    else:
        if not participants:
            raise ValidationError("At least one participant is required")
        split_ids = resolve_equal_participants(payer_id, participants, payer_policy)
        if not split_ids:
            raise ValidationError("An equal split needs at least one participant other than the payer")
        shares = calculate_equal_splits(amount, split_ids)

    validate_users_exist(db, [payer_id] + [user_id for user_id, _ in shares])

    if group_id is not None:
        get_group_or_404(db, group_id)
        verify_group_membership(db, group_id, payer_id)
        member_ids = get_group_member_ids(db, group_id)
        for user_id, _ in shares:
            if user_id not in member_ids:
                raise ValidationError(f"User {user_id} is not a member of this group")

    description = (description or "").strip()
    category = (category or "").strip() or "other"

    try:
        db_expense = models.Expense(
            description=description,
            amount=amount,
            category=category,
            subcategory=subcategory,
            created_by_id=payer_id,
            group_id=group_id,
            split_type=split_type,
        )
        db.add(db_expense)
        db.flush()

        for user_id, share in shares:
            db.add(models.ExpenseSplit(
                expense_id=db_expense.id,
                user_id=user_id,
                amount=share,
                paid=False
            ))

        label = description or "an expense"
        for user_id, share in shares:
            if user_id == payer_id:
                continue
            notify_users(
                db,
                [user_id],
                f'You owe {format_currency(share)} for "{label}"',
                type="expense_split",
                data={
                    "expenseId": db_expense.id,
                    "amount": to_dollars(share),
                    "description": description,
                    "createdBy": payer_id,
                }
            )

        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Rolled back expense creation for payer {payer_id}")
        raise

    db.refresh(db_expense)
    logger.info(
        f"Created expense {db_expense.id} ({format_currency(amount)}, {split_type}) "
        f"by user {payer_id} with {len(shares)} splits"
    )
    return db_expense


def pay_share(
    db: Session,
    expense_id: int,
    caller_id: int,
    split_user_id: Optional[int] = None
) -> list[models.ExpenseSplit]:
    """
    Mark ``split_user_id``'s share of an expense as paid.

    Either the participant or the expense creator may confirm the payment.
    Paying an already-paid share is a successful no-op. The update only
    matches unpaid rows, so duplicate submissions cannot double-apply.

    Returns:
        All splits of the expense after the update, ordered by split ID
    """
    if split_user_id is None:
        split_user_id = caller_id

    expense = get_expense_or_404(db, expense_id)
    split = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id == expense_id,
        models.ExpenseSplit.user_id == split_user_id
    ).first()
    if not split:
        raise NotFoundError(f"User {split_user_id} has no share in this expense")

    if caller_id not in (split.user_id, expense.created_by_id):
        raise ForbiddenError("Only the participant or the expense creator can mark this share as paid")

    updated = db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.id == split.id,
        models.ExpenseSplit.paid == False
    ).update({"paid": True, "paid_at": datetime.utcnow()}, synchronize_session=False)

    if updated:
        label = expense.description or "an expense"
        if caller_id != expense.created_by_id:
            notify_users(
                db,
                [expense.created_by_id],
                f'Your {format_currency(split.amount)} share of "{label}" was paid',
                type="payment_received",
                data={"expenseId": expense.id, "amount": to_dollars(split.amount), "paidBy": split.user_id}
            )
        elif split.user_id != caller_id:
            notify_users(
                db,
                [split.user_id],
                f'Your {format_currency(split.amount)} share of "{label}" was marked as paid',
                type="payment_confirmed",
                data={"expenseId": expense.id, "amount": to_dollars(split.amount)}
            )
        logger.info(f"Split {split.id} of expense {expense_id} marked paid by user {caller_id}")
    else:
        logger.info(f"Split {split.id} of expense {expense_id} already paid, nothing to do")

    db.commit()

    return db.query(models.ExpenseSplit).filter(
        models.ExpenseSplit.expense_id == expense_id
    ).order_by(models.ExpenseSplit.id).all()


def settle_group_expense(
    db: Session,
    group_id: int,
    payer_id: int,
    amount: int,
    category: str,
    members: list[MemberSelection],
    split_type: str = SPLIT_EQUAL,
    description: str = "",
    subcategory: Optional[str] = None,
) -> models.Expense:
    """
    Create an expense from the group dialog.

    Only ticked members get a split, the payer included: an unticked payer
    has no share regardless of PAYER_SHARE_POLICY. The equal/custom toggle
    maps to the split type; for custom splits each ticked member's amount is
    their share.
    """
    get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, payer_id)

    selected = [m for m in members if m.selected]
    if not selected:
        raise ValidationError("Select at least one member to split with")

    member_ids = get_group_member_ids(db, group_id)
    for member in selected:
        if member.user_id not in member_ids:
            raise ValidationError(f"User {member.user_id} is not a member of this group")

    participants = [m.user_id for m in selected]
    custom_splits = None
    if (split_type or "").lower() == SPLIT_CUSTOM:
        missing = [m.user_id for m in selected if m.amount is None]
        if missing:
            raise ValidationError(f"Missing custom amount for users {missing}")
        custom_splits = [(m.user_id, m.amount) for m in selected]

    return create_expense(
        db,
        payer_id=payer_id,
        amount=amount,
        category=category,
        participants=participants,
        split_type=split_type,
        custom_splits=custom_splits,
        description=description,
        subcategory=subcategory,
        group_id=group_id,
        payer_policy=PAYER_AS_GIVEN,
    )
