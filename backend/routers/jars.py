"""Jar and membership endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.jar import Jar, JarMember
from backend.models.user import User
from backend.schemas.jar import (
    CreateJarRequest,
    JarDetailResponse,
    JarListResponse,
    JarProgressResponse,
    JarResponse,
    JarSummary,
    JoinJarRequest,
    JoinJarResponse,
    MemberResponse,
    RegenerateCodeResponse,
    SuccessResponse,
    UpdateJarRequest,
    UpdateMemberRequest,
)
from backend.services import GamificationService, JarService
from backend.utils.categories import get_categories_for_topic

logger = logging.getLogger(__name__)

router = APIRouter()


def _member_response(member: JarMember) -> MemberResponse:
    return MemberResponse(
        user_id=member.user_id,
        name=member.user.name if member.user else None,
        email=member.user.email if member.user else None,
        role=member.role,
        status=member.status,
        joined_at=member.joined_at,
    )


def _jar_fields(jar: Jar) -> dict:
    return {field: getattr(jar, field) for field in JarResponse.model_fields}


@router.post("", response_model=JarResponse, status_code=201)
async def create_jar(
    request: CreateJarRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JarResponse:
    """Create a jar owned by the caller."""
    jar = await JarService(db).create_jar(
        user,
        name=request.name,
        topic=request.topic,
        selection_mode=request.selection_mode,
        vote_candidates_count=request.vote_candidates_count,
        default_idea_private=request.default_idea_private,
    )
    return JarResponse.model_validate(jar)


@router.get("", response_model=JarListResponse)
async def list_jars(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JarListResponse:
    """List the caller's jars with their role in each."""
    rows = await JarService(db).list_jars(user.user_id)
    return JarListResponse(
        jars=[JarSummary(**_jar_fields(jar), role=member.role) for jar, member in rows]
    )


@router.post("/join", response_model=JoinJarResponse)
async def join_jar(
    request: JoinJarRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JoinJarResponse:
    """Join a jar by its reference code."""
    jar, already_member = await JarService(db).join_jar(user, request.code)
    message = f"You are already a member of {jar.name}" if already_member else f"Joined {jar.name}"
    return JoinJarResponse(success=True, jar_id=jar.jar_id, already_member=already_member, message=message)


@router.get("/{jar_id}", response_model=JarDetailResponse)
async def get_jar(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JarDetailResponse:
    """Jar details, members and the categories its topic allows."""
    jar, member, members = await JarService(db).get_jar_detail(jar_id, user.user_id)
    return JarDetailResponse(
        **_jar_fields(jar),
        role=member.role,
        categories=get_categories_for_topic(jar.topic),
        members=[_member_response(m) for m in members],
    )


@router.patch("/{jar_id}", response_model=JarResponse)
async def update_jar(
    jar_id: UUID,
    request: UpdateJarRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JarResponse:
    """Update jar settings. ADMIN only."""
    jar = await JarService(db).update_jar(jar_id, user.user_id, **request.model_dump(exclude_unset=True))
    return JarResponse.model_validate(jar)


@router.delete("/{jar_id}", response_model=SuccessResponse)
async def delete_jar(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    await JarService(db).delete_jar(jar_id, user.user_id)
    return SuccessResponse(success=True)


@router.post("/{jar_id}/leave", response_model=SuccessResponse)
async def leave_jar(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    await JarService(db).leave_jar(jar_id, user)
    return SuccessResponse(success=True)


@router.post("/{jar_id}/regenerate-code", response_model=RegenerateCodeResponse)
async def regenerate_code(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> RegenerateCodeResponse:
    """Issue a new reference code. The old one stops working."""
    code = await JarService(db).regenerate_code(jar_id, user.user_id)
    return RegenerateCodeResponse(success=True, reference_code=code)


@router.patch("/{jar_id}/members/{member_user_id}", response_model=SuccessResponse)
async def update_member(
    jar_id: UUID,
    member_user_id: UUID,
    request: UpdateMemberRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    await JarService(db).update_member_role(jar_id, user.user_id, member_user_id, request.role)
    return SuccessResponse(success=True)


@router.delete("/{jar_id}/members/{member_user_id}", response_model=SuccessResponse)
async def remove_member(
    jar_id: UUID,
    member_user_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    await JarService(db).remove_member(jar_id, user.user_id, member_user_id)
    return SuccessResponse(success=True)


@router.get("/{jar_id}/progress", response_model=JarProgressResponse)
async def get_progress(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JarProgressResponse:
    """XP, level and unlocked achievements of a jar."""
    jar_service = JarService(db)
    await jar_service.require_member(jar_id, user.user_id)
    jar = await jar_service.get_jar(jar_id)
    progress = await GamificationService(db).get_progress(jar)
    return JarProgressResponse(**progress)
