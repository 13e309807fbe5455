"""Analytics router: spending by category."""

from typing import Annotated
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils.analytics import VIEW_SHARE, spending_by_category


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/categories", response_model=schemas.CategorySpendingResponse)
def get_category_spending(
    current_user: Annotated[models.User, Depends(get_current_user)],
    timeframe: str = Query("this_month"),
    view: str = Query(VIEW_SHARE),
    db: Session = Depends(get_db)
):
    categories = spending_by_category(db, current_user.id, timeframe=timeframe, view=view)
    return schemas.CategorySpendingResponse(
        timeframe=timeframe.lower(),
        view=view.lower(),
        categories=categories
    )
