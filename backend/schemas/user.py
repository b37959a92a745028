"""User settings schemas."""
from typing import Optional

from pydantic import BaseModel, constr

from backend.schemas.base import BaseSchema


class UserSettingsResponse(BaseSchema):
    name: Optional[str] = None
    email: str
    is_premium: bool
    notify_voting: bool
    notify_idea_added: bool
    notify_jar_spun: bool
    notify_achievements: bool
    notify_level_up: bool


class UpdateUserSettingsRequest(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    notify_voting: Optional[bool] = None
    notify_idea_added: Optional[bool] = None
    notify_jar_spun: Optional[bool] = None
    notify_achievements: Optional[bool] = None
    notify_level_up: Optional[bool] = None
