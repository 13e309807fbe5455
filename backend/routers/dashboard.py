"""Dashboard router: recent expenses, groups and balances in one call."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from routers.groups import build_group_schema, list_user_groups
from utils.analytics import spending_history
from utils.balances import compute_balances


router = APIRouter(tags=["dashboard"])

DASHBOARD_EXPENSE_LIMIT = 50


@router.get("/dashboard", response_model=schemas.DashboardResponse)
def get_dashboard(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    expenses = spending_history(db, current_user.id, timeframe="all_time", limit=DASHBOARD_EXPENSE_LIMIT)

    user_groups = list_user_groups(db, current_user.id)

    balances = compute_balances(db, current_user.id)

    return schemas.DashboardResponse(
        expenses=expenses,
        groups=[build_group_schema(db, g) for g in user_groups],
        balances=balances["balances"],
        summary=balances["summary"]
    )
