import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.models.users import User
from app.schemas.common import OkOut
from app.services import demo_service

router = APIRouter(prefix="/api/demo", tags=["demo"])
settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("/reset", response_model=OkOut)
def reset_demo(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OkOut:
    if not settings.demo_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Demo mode disabled",
        )
    demo_service.reset_demo_data(db)
    logger.info("Demo data reset by %s", current_user.id)
    return OkOut()
