"""Jar and membership schemas."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, constr

from backend.schemas.base import BaseSchema

SelectionModeStr = Literal["RANDOM", "VOTE", "ADMIN_PICK", "ALLOCATION"]
RoleStr = Literal["ADMIN", "MEMBER"]
JarNameStr = constr(strip_whitespace=True, min_length=1, max_length=100)


class CreateJarRequest(BaseModel):
    name: JarNameStr
    topic: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    selection_mode: Optional[SelectionModeStr] = None
    vote_candidates_count: int = Field(default=0, ge=0, le=100)
    default_idea_private: bool = False


class UpdateJarRequest(BaseModel):
    name: Optional[JarNameStr] = None
    topic: Optional[constr(strip_whitespace=True, min_length=1, max_length=50)] = None
    selection_mode: Optional[SelectionModeStr] = None
    vote_candidates_count: Optional[int] = Field(default=None, ge=0, le=100)
    default_idea_private: Optional[bool] = None


class JoinJarRequest(BaseModel):
    code: constr(strip_whitespace=True, min_length=1, max_length=16)


class UpdateMemberRequest(BaseModel):
    role: RoleStr


class JarResponse(BaseSchema):
    jar_id: UUID
    name: str
    reference_code: str
    topic: str
    selection_mode: str
    vote_candidates_count: int
    default_idea_private: bool
    xp: int
    level: int
    created_at: datetime


class JarSummary(JarResponse):
    role: str


class JarListResponse(BaseModel):
    jars: list[JarSummary]


class MemberResponse(BaseSchema):
    user_id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    status: str
    joined_at: datetime


class JarDetailResponse(JarResponse):
    role: str
    categories: list[str]
    members: list[MemberResponse]


class JoinJarResponse(BaseModel):
    success: bool = True
    jar_id: UUID
    already_member: bool
    message: str


class RegenerateCodeResponse(BaseModel):
    success: bool = True
    reference_code: str


class SuccessResponse(BaseModel):
    success: bool = True


class AchievementResponse(BaseSchema):
    achievement_id: str
    title: str
    unlocked_at: datetime


class JarProgressResponse(BaseSchema):
    jar_id: UUID
    xp: int
    level: int
    progress_percent: float
    xp_to_next: int
    current_title: str
    next_title: str
    next_level_xp: int
    achievements: list[AchievementResponse]
