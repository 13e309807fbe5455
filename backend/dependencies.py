"""Shared dependencies for resolving the calling user."""

from typing import Annotated
from fastapi import Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from utils.validation import get_user_or_404


def get_current_user(
    user_id: Annotated[int, Query(alias="userId")],
    db: Session = Depends(get_db)
):
    """
    Get the calling user from the ``userId`` query parameter.

    Session handling lives in front of this service; requests arrive with the
    caller's identity already established and passed explicitly.
    """
    return get_user_or_404(db, user_id)
