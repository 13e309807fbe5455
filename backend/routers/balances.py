"""Balances router: per-friend balances derived from unpaid splits."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.balances import compute_balances


router = APIRouter(tags=["balances"])


@router.get("/balances", response_model=schemas.BalancesResponse)
def get_balances(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    result = compute_balances(db, current_user.id)
    return schemas.BalancesResponse(**result)
