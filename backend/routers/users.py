"""Users router: signup records, lookup and search."""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from utils.errors import ValidationError
from utils.validation import get_user_by_email, get_user_by_phone, get_user_or_404


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=schemas.User, status_code=201)
def create_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db)
):
    email = user.email.strip().lower()
    if get_user_by_email(db, email):
        raise ValidationError("Email already registered")

    phone = user.phone.strip() if user.phone else None
    if phone and get_user_by_phone(db, phone):
        raise ValidationError("Phone number already registered")

    db_user = models.User(name=user.name, email=email, phone=phone, role=user.role)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"Created user {db_user.id} ({db_user.role})")
    return db_user


@router.get("/search", response_model=list[schemas.User])
def search_users(
    term: str = Query(""),
    db: Session = Depends(get_db)
):
    term = term.strip()
    if len(term) < 2:
        return []

    pattern = f"%{term}%"
    return db.query(models.User).filter(
        models.User.name.ilike(pattern) |
        models.User.email.ilike(pattern) |
        models.User.phone.ilike(pattern)
    ).order_by(models.User.name, models.User.id).all()


@router.get("/{user_id}", response_model=schemas.User)
def get_user(
    user_id: int,
    db: Session = Depends(get_db)
):
    return get_user_or_404(db, user_id)
