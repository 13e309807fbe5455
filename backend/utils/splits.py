"""Split allocation: equal division of an expense and custom-split validation."""

import os

from utils.currency import SPLIT_TOLERANCE_CENTS, format_currency, to_dollars
from utils.errors import SplitMismatchError, ValidationError


SPLIT_EQUAL = "equal"
SPLIT_CUSTOM = "custom"
SPLIT_TYPES = (SPLIT_EQUAL, SPLIT_CUSTOM)

# Whether the payer takes a share of an equal split
PAYER_INCLUDE = "include"
PAYER_EXCLUDE = "exclude"
# The participant list already says whether the payer has a share (group dialog)
PAYER_AS_GIVEN = "as_given"
PAYER_POLICIES = (PAYER_INCLUDE, PAYER_EXCLUDE, PAYER_AS_GIVEN)
PAYER_SHARE_POLICY = os.getenv("PAYER_SHARE_POLICY", PAYER_INCLUDE).lower()


def resolve_equal_participants(payer_id: int, participant_ids: list[int], policy: str = None) -> list[int]:
    """
    Apply the payer-share policy to an equal split's participant list.

    With ``include`` the payer joins the divisor (prepended when the caller
    did not list them). With ``exclude`` the payer is dropped from the list.
    With ``as_given`` the list is used unchanged.
    Order is otherwise preserved since it decides who absorbs remainder cents.
    """
    policy = (policy or PAYER_SHARE_POLICY).lower()
    if policy not in PAYER_POLICIES:
        raise ValidationError(f"Unknown payer share policy '{policy}'")

    if policy == PAYER_AS_GIVEN:
        return list(participant_ids)
    if policy == PAYER_EXCLUDE:
        return [pid for pid in participant_ids if pid != payer_id]

    if payer_id in participant_ids:
        return list(participant_ids)
    return [payer_id] + list(participant_ids)


def calculate_equal_splits(amount: int, participant_ids: list[int]) -> list[tuple[int, int]]:
    """
    Divide ``amount`` cents equally using the largest-remainder method.

    Algorithm:
    1. Everyone gets the floor share ``amount // n``
    2. The leftover ``amount % n`` cents go one each to the first participants

    The shares always sum to exactly ``amount``.

    Returns:
        List of (user_id, amount_cents) in participant order
    """
    if not participant_ids:
        raise ValidationError("At least one participant is required")

    num_participants = len(participant_ids)
    share_per_person = amount // num_participants
    remainder = amount % num_participants

    return [
        (user_id, share_per_person + (1 if idx < remainder else 0))
        for idx, user_id in enumerate(participant_ids)
    ]


def validate_custom_splits(amount: int, splits: list[tuple[int, int]]) -> None:
    """Raise SplitMismatchError unless the custom shares sum to ``amount`` within one cent."""
    for user_id, share in splits:
        if share < 0:
            raise ValidationError(f"Split amount for user {user_id} cannot be negative")

    total_split = sum(share for _, share in splits)
    difference = total_split - amount
    if abs(difference) > SPLIT_TOLERANCE_CENTS:
        raise SplitMismatchError(
            f"Split amounts do not add up to the total of {format_currency(amount)}: "
            f"off by {format_currency(abs(difference))}",
            discrepancy=to_dollars(abs(difference)),
        )
