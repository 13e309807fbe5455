from unittest.mock import patch

import pytest

import models
from utils.balances import can_remove_friend, compute_balances, get_friend_balance
from utils.errors import ForbiddenError, NotFoundError, SplitMismatchError, ValidationError
from utils.ledger import MemberSelection, create_expense, pay_share, settle_group_expense
from utils.splits import PAYER_EXCLUDE


def _balance_with(result, user_id):
    return next((b for b in result["balances"] if b["user_id"] == user_id), None)


def test_dinner_split_three_ways(db_session, alice, bob, carol):
    # Alice pays $90 for dinner with Bob and Carol
    expense = create_expense(db_session, alice.id, 9000, "food", [bob.id, carol.id], description="Dinner")

    assert [(s.user_id, s.amount) for s in expense.splits] == [
        (alice.id, 3000), (bob.id, 3000), (carol.id, 3000)
    ]

    balances = compute_balances(db_session, alice.id)
    assert [b["user_name"] for b in balances["balances"]] == ["Bob", "Carol"]
    assert all(b["owes_you"] == 30.0 for b in balances["balances"])
    assert balances["summary"]["total_owed_to_you"] == 60.0
    assert balances["summary"]["net_balance"] == 60.0

    bob_view = compute_balances(db_session, bob.id)
    assert _balance_with(bob_view, alice.id)["you_owe"] == 30.0
    assert _balance_with(bob_view, alice.id)["net_balance"] == -30.0


def test_exclude_policy_leaves_payer_without_a_share(db_session, alice, bob, carol):
    expense = create_expense(
        db_session, alice.id, 9000, "food", [alice.id, bob.id, carol.id],
        payer_policy=PAYER_EXCLUDE
    )
    assert [(s.user_id, s.amount) for s in expense.splits] == [(bob.id, 4500), (carol.id, 4500)]


def test_exclude_policy_with_only_the_payer_is_rejected(db_session, alice):
    with pytest.raises(ValidationError):
        create_expense(db_session, alice.id, 1000, "food", [alice.id], payer_policy=PAYER_EXCLUDE)
    assert db_session.query(models.Expense).count() == 0


def test_custom_split_mismatch_is_rejected(db_session, alice, bob):
    with pytest.raises(SplitMismatchError) as exc_info:
        create_expense(
            db_session, alice.id, 10000, "travel", [],
            split_type="custom", custom_splits=[(alice.id, 4000), (bob.id, 6500)]
        )

    assert exc_info.value.discrepancy == 5.0
    assert "$5.00" in exc_info.value.message
    assert db_session.query(models.Expense).count() == 0


def test_custom_split_participants_must_match(db_session, alice, bob, carol):
    with pytest.raises(ValidationError):
        create_expense(
            db_session, alice.id, 1000, "food", [bob.id, carol.id],
            split_type="custom", custom_splits=[(alice.id, 500), (bob.id, 500)]
        )


@pytest.mark.parametrize("amount", [0, -500])
def test_non_positive_amount_is_rejected(db_session, alice, bob, amount):
    with pytest.raises(ValidationError):
        create_expense(db_session, alice.id, amount, "food", [bob.id])


def test_duplicate_participants_are_rejected(db_session, alice, bob):
    with pytest.raises(ValidationError):
        create_expense(db_session, alice.id, 1000, "food", [bob.id, bob.id])


def test_unknown_participant_is_not_found(db_session, alice):
    with pytest.raises(NotFoundError):
        create_expense(db_session, alice.id, 1000, "food", [9999])


def test_expense_creation_is_atomic(db_session, alice, bob):
    with patch("utils.ledger.notify_users", side_effect=RuntimeError("notification store down")):
        with pytest.raises(RuntimeError):
            create_expense(db_session, alice.id, 2000, "food", [bob.id])

    assert db_session.query(models.Expense).count() == 0
    assert db_session.query(models.ExpenseSplit).count() == 0
    assert db_session.query(models.Notification).count() == 0


def test_expense_creation_notifies_non_payers(db_session, alice, bob, carol):
    expense = create_expense(db_session, alice.id, 9000, "food", [bob.id, carol.id], description="Dinner")

    notifications = db_session.query(models.Notification).order_by(models.Notification.user_id).all()
    assert [n.user_id for n in notifications] == [bob.id, carol.id]
    assert all(n.type == "expense_split" for n in notifications)
    assert notifications[0].message == 'You owe $30.00 for "Dinner"'
    assert notifications[0].data["expenseId"] == expense.id


def test_pay_share_is_idempotent(db_session, alice, bob):
    expense = create_expense(db_session, alice.id, 2000, "food", [bob.id])

    first = pay_share(db_session, expense.id, bob.id)
    second = pay_share(db_session, expense.id, bob.id)

    assert [(s.user_id, s.paid) for s in first] == [(alice.id, False), (bob.id, True)]
    assert [(s.user_id, s.paid) for s in second] == [(alice.id, False), (bob.id, True)]

    received = db_session.query(models.Notification).filter(
        models.Notification.type == "payment_received"
    ).all()
    assert len(received) == 1
    assert received[0].user_id == alice.id

    assert get_friend_balance(db_session, alice.id, bob.id) == 0


def test_creator_can_confirm_a_participant_payment(db_session, alice, bob):
    expense = create_expense(db_session, alice.id, 2000, "food", [bob.id])

    pay_share(db_session, expense.id, alice.id, split_user_id=bob.id)

    confirmed = db_session.query(models.Notification).filter(
        models.Notification.type == "payment_confirmed"
    ).all()
    assert [n.user_id for n in confirmed] == [bob.id]


def test_pay_share_by_stranger_is_forbidden(db_session, alice, bob, carol):
    expense = create_expense(db_session, alice.id, 2000, "food", [bob.id])

    with pytest.raises(ForbiddenError):
        pay_share(db_session, expense.id, carol.id, split_user_id=bob.id)


def test_pay_share_not_found_cases(db_session, alice, bob, carol):
    expense = create_expense(db_session, alice.id, 2000, "food", [bob.id])

    with pytest.raises(NotFoundError):
        pay_share(db_session, 9999, bob.id)
    with pytest.raises(NotFoundError):
        pay_share(db_session, expense.id, carol.id)


def test_balances_are_symmetric(db_session, alice, bob, carol):
    create_expense(db_session, alice.id, 9000, "food", [bob.id, carol.id])
    create_expense(db_session, bob.id, 4000, "travel", [alice.id])
    create_expense(
        db_session, carol.id, 1500, "fun", [],
        split_type="custom", custom_splits=[(alice.id, 1000), (bob.id, 500)]
    )

    for user, other in [(alice, bob), (alice, carol), (bob, carol)]:
        mine = _balance_with(compute_balances(db_session, user.id), other.id)
        theirs = _balance_with(compute_balances(db_session, other.id), user.id)
        assert mine["net_balance"] == -theirs["net_balance"]


def test_balances_are_deterministic(db_session, alice, bob, carol):
    create_expense(db_session, alice.id, 9000, "food", [bob.id, carol.id], description="Dinner")
    create_expense(db_session, carol.id, 3000, "fun", [alice.id], description="Movie")

    assert compute_balances(db_session, alice.id) == compute_balances(db_session, alice.id)


def test_paid_shares_leave_the_balance(db_session, alice, bob, carol):
    expense = create_expense(db_session, alice.id, 9000, "food", [bob.id, carol.id])
    pay_share(db_session, expense.id, bob.id)

    balances = compute_balances(db_session, alice.id)
    assert [b["user_id"] for b in balances["balances"]] == [carol.id]
    assert balances["summary"]["total_owed_to_you"] == 30.0


def test_removal_guard_is_asymmetric(db_session, alice, bob):
    create_expense(db_session, alice.id, 2000, "food", [bob.id])

    # Bob owes Alice: Alice cannot drop Bob, Bob can drop Alice
    assert can_remove_friend(db_session, alice.id, bob.id) is False
    assert can_remove_friend(db_session, bob.id, alice.id) is True


def test_group_expense_only_splits_selected_members(db_session, alice, bob, carol):
    group = models.Group(name="Trip", created_by_id=alice.id)
    db_session.add(group)
    db_session.flush()
    for user in (alice, bob, carol):
        db_session.add(models.GroupMember(group_id=group.id, user_id=user.id))
    db_session.commit()

    expense = settle_group_expense(
        db_session, group.id, alice.id, 6000, "travel",
        [MemberSelection(alice.id), MemberSelection(bob.id), MemberSelection(carol.id, selected=False)],
        description="Gas"
    )

    assert expense.group_id == group.id
    assert [(s.user_id, s.amount) for s in expense.splits] == [(alice.id, 3000), (bob.id, 3000)]


def test_group_expense_unticked_payer_gets_no_share(db_session, alice, bob, carol):
    group = models.Group(name="Dinner club", created_by_id=alice.id)
    db_session.add(group)
    db_session.flush()
    for user in (alice, bob, carol):
        db_session.add(models.GroupMember(group_id=group.id, user_id=user.id))
    db_session.commit()

    expense = settle_group_expense(
        db_session, group.id, alice.id, 9000, "food",
        [MemberSelection(alice.id, selected=False), MemberSelection(bob.id), MemberSelection(carol.id)]
    )

    assert [(s.user_id, s.amount) for s in expense.splits] == [(bob.id, 4500), (carol.id, 4500)]
    assert get_friend_balance(db_session, alice.id, bob.id) == 4500


def test_group_expense_custom_amounts(db_session, alice, bob, carol):
    group = models.Group(name="Flat", created_by_id=alice.id)
    db_session.add(group)
    db_session.flush()
    for user in (alice, bob, carol):
        db_session.add(models.GroupMember(group_id=group.id, user_id=user.id))
    db_session.commit()

    expense = settle_group_expense(
        db_session, group.id, alice.id, 10000, "bills",
        [MemberSelection(alice.id, amount=2000), MemberSelection(bob.id, amount=3000),
         MemberSelection(carol.id, amount=5000)],
        split_type="custom"
    )
    assert [s.amount for s in expense.splits] == [2000, 3000, 5000]


def test_group_expense_rules(db_session, alice, bob, carol):
    group = models.Group(name="Pair", created_by_id=alice.id)
    db_session.add(group)
    db_session.flush()
    db_session.add(models.GroupMember(group_id=group.id, user_id=alice.id))
    db_session.add(models.GroupMember(group_id=group.id, user_id=bob.id))
    db_session.commit()

    # Payer outside the group
    with pytest.raises(ForbiddenError):
        settle_group_expense(db_session, group.id, carol.id, 1000, "food", [MemberSelection(alice.id)])
    # Selected member outside the group
    with pytest.raises(ValidationError):
        settle_group_expense(db_session, group.id, alice.id, 1000, "food", [MemberSelection(carol.id)])
    # Nobody selected
    with pytest.raises(ValidationError):
        settle_group_expense(db_session, group.id, alice.id, 1000, "food", [MemberSelection(bob.id, selected=False)])
    # Custom split without amounts
    with pytest.raises(ValidationError):
        settle_group_expense(
            db_session, group.id, alice.id, 1000, "food", [MemberSelection(bob.id)], split_type="custom"
        )
    with pytest.raises(NotFoundError):
        settle_group_expense(db_session, 9999, alice.id, 1000, "food", [MemberSelection(bob.id)])


def test_expense_in_group_requires_membership(db_session, alice, bob, carol):
    group = models.Group(name="Pair", created_by_id=alice.id)
    db_session.add(group)
    db_session.flush()
    db_session.add(models.GroupMember(group_id=group.id, user_id=alice.id))
    db_session.add(models.GroupMember(group_id=group.id, user_id=bob.id))
    db_session.commit()

    # Payer outside the group
    with pytest.raises(ForbiddenError):
        create_expense(db_session, carol.id, 5000, "food", [carol.id], group_id=group.id)
    # Participant outside the group
    with pytest.raises(ValidationError):
        create_expense(db_session, alice.id, 5000, "food", [carol.id], group_id=group.id)
    # Unknown group
    with pytest.raises(NotFoundError):
        create_expense(db_session, alice.id, 5000, "food", [bob.id], group_id=9999)

    assert db_session.query(models.Expense).count() == 0

    expense = create_expense(db_session, alice.id, 5000, "food", [bob.id], group_id=group.id)
    assert expense.group_id == group.id
