"""User settings endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.user import UpdateUserSettingsRequest, UserSettingsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings", response_model=UserSettingsResponse)
async def get_user_settings(user: User = Depends(get_current_user)) -> UserSettingsResponse:
    return UserSettingsResponse.model_validate(user)


@router.patch("/settings", response_model=UserSettingsResponse)
async def update_user_settings(
    request: UpdateUserSettingsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserSettingsResponse:
    """Update the display name and notification preferences."""
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.user_id} updated settings: {sorted(changes)}")
    return UserSettingsResponse.model_validate(user)
