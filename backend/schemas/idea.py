"""Idea schemas."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, constr

from backend.schemas.base import BaseSchema

CostStr = Literal["FREE", "$", "$$", "$$$"]
ActivityLevelStr = Literal["LOW", "MEDIUM", "HIGH"]
TimeOfDayStr = Literal["ANY", "DAY", "EVENING"]
DescriptionStr = constr(strip_whitespace=True, min_length=1, max_length=500)


class CreateIdeaRequest(BaseModel):
    description: DescriptionStr
    details: Optional[constr(max_length=5000)] = None
    category: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    cost: CostStr = "FREE"
    duration: float = Field(default=1.0, gt=0, le=72)
    activity_level: ActivityLevelStr = "LOW"
    time_of_day: TimeOfDayStr = "ANY"
    indoor: bool = False
    is_private: Optional[bool] = None
    is_surprise: bool = False


class UpdateIdeaRequest(BaseModel):
    description: Optional[DescriptionStr] = None
    details: Optional[constr(max_length=5000)] = None
    category: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    cost: Optional[CostStr] = None
    duration: Optional[float] = Field(default=None, gt=0, le=72)
    activity_level: Optional[ActivityLevelStr] = None
    time_of_day: Optional[TimeOfDayStr] = None
    indoor: Optional[bool] = None
    is_private: Optional[bool] = None
    is_surprise: Optional[bool] = None


class IdeaAuthor(BaseModel):
    id: UUID
    name: Optional[str] = None


class IdeaResponse(BaseSchema):
    idea_id: UUID
    jar_id: UUID
    created_by_id: Optional[UUID] = None
    description: str
    details: Optional[str] = None
    category: str
    cost: str
    duration: float
    activity_level: str
    time_of_day: str
    indoor: bool
    is_private: bool
    is_surprise: bool
    status: str
    assigned_to_id: Optional[UUID] = None
    selected_at: Optional[datetime] = None
    created_at: datetime


class IdeaListItem(IdeaResponse):
    is_masked: bool = False
    created_by: Optional[IdeaAuthor] = None


class IdeaListResponse(BaseModel):
    ideas: list[IdeaListItem]


class SpinFilters(BaseModel):
    category: Optional[str] = None
    time_of_day: Optional[TimeOfDayStr] = None
    min_duration: Optional[float] = Field(default=None, ge=0)
    max_duration: Optional[float] = Field(default=None, ge=0)
    max_cost: Optional[CostStr] = None
    max_activity_level: Optional[ActivityLevelStr] = None
    indoor: Optional[bool] = None


class SpinRequest(BaseModel):
    filters: SpinFilters = Field(default_factory=SpinFilters)


class SpinResponse(BaseModel):
    success: bool = True
    idea: IdeaResponse
    xp_added: int
    total_xp: int
    level: int
    leveled_up: bool
    achievements_unlocked: list[str]


class GenerateIdeasRequest(BaseModel):
    category: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    count: int = Field(default=3, ge=1, le=5)
    prompt: Optional[constr(max_length=500)] = None


class IdeaSuggestion(BaseModel):
    description: str
    details: Optional[str] = None
    category: str
    cost: str
    duration: float
    activity_level: str
    time_of_day: str
    indoor: bool


class GenerateIdeasResponse(BaseModel):
    ideas: list[IdeaSuggestion]
    source: Literal["ai", "fallback"]


class AllocateIdeasRequest(BaseModel):
    amount_per_user: int


class AllocateIdeasResponse(BaseModel):
    success: bool = True
    allocated: int


class ResetJarResponse(BaseModel):
    success: bool = True
    message: str
    count: int
