# skillswap_core/api/badge.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skillswap_core.database import get_db
from skillswap_core.models.user import User
from skillswap_core.schemas.badge import BadgeOverview, BadgeResponse
from skillswap_core.services import badge_service
from skillswap_core.utils.security import get_current_user

router = APIRouter(prefix="/badges", tags=["badges"])


@router.get("", response_model=List[BadgeResponse])
def list_badges(db: Session = Depends(get_db)):
    return badge_service.list_badges(db)


@router.get("/my", response_model=BadgeOverview)
def my_badges(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Every badge with the caller's earned flag, plus the stats they are judged on."""
    return badge_service.badge_overview(db, current_user.id)
