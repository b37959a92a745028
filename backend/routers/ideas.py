"""Idea endpoints: jar contents, editing, spinning and AI suggestions."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.dependencies import get_current_user
from backend.models.user import User
from backend.schemas.idea import (
    AllocateIdeasRequest,
    AllocateIdeasResponse,
    CreateIdeaRequest,
    GenerateIdeasRequest,
    GenerateIdeasResponse,
    IdeaAuthor,
    IdeaListItem,
    IdeaListResponse,
    IdeaResponse,
    IdeaSuggestion,
    ResetJarResponse,
    SpinRequest,
    SpinResponse,
    UpdateIdeaRequest,
)
from backend.schemas.jar import SuccessResponse
from backend.services import IdeaGenerationService, IdeaService
from backend.services.idea_service import IdeaView

logger = logging.getLogger(__name__)

# Mounted under /jars: listing, creation, spinning and generation
jar_ideas_router = APIRouter()
# Mounted under /ideas: single-idea edits
router = APIRouter()


def _list_item(view: IdeaView) -> IdeaListItem:
    idea = view.idea
    author = None
    if idea.created_by is not None:
        author = IdeaAuthor(id=idea.created_by.user_id, name=idea.created_by.name)
    fields = {field: getattr(idea, field) for field in IdeaResponse.model_fields}
    fields.update(description=view.description, details=view.details)
    return IdeaListItem(**fields, is_masked=view.is_masked, created_by=author)


@jar_ideas_router.get("/{jar_id}/ideas", response_model=IdeaListResponse)
async def list_ideas(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IdeaListResponse:
    """All ideas in the jar, newest first. Hidden ideas are masked."""
    views = await IdeaService(db).list_ideas(jar_id, user)
    return IdeaListResponse(ideas=[_list_item(view) for view in views])


@jar_ideas_router.post("/{jar_id}/ideas", response_model=IdeaResponse, status_code=201)
async def create_idea(
    jar_id: UUID,
    request: CreateIdeaRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IdeaResponse:
    idea = await IdeaService(db).create_idea(jar_id, user, **request.model_dump())
    return IdeaResponse.model_validate(idea)


@jar_ideas_router.post("/{jar_id}/spin", response_model=SpinResponse)
async def spin_jar(
    jar_id: UUID,
    request: SpinRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SpinResponse:
    """Pick a random unselected idea matching the filters."""
    filters = request.filters.model_dump(exclude_none=True) if request else {}
    result = await IdeaService(db).spin(jar_id, user, filters)
    return SpinResponse(
        success=True,
        idea=IdeaResponse.model_validate(result.idea),
        xp_added=result.xp.xp_added,
        total_xp=result.xp.total_xp,
        level=result.xp.level,
        leveled_up=result.xp.leveled_up,
        achievements_unlocked=result.achievements,
    )


@jar_ideas_router.post("/{jar_id}/allocate", response_model=AllocateIdeasResponse)
async def allocate_ideas(
    jar_id: UUID,
    request: AllocateIdeasRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AllocateIdeasResponse:
    """Hand out unassigned ideas to every active member. ADMIN only."""
    allocated = await IdeaService(db).allocate(jar_id, user, request.amount_per_user)
    return AllocateIdeasResponse(success=True, allocated=allocated)


@jar_ideas_router.post("/{jar_id}/reset", response_model=ResetJarResponse)
async def reset_jar(
    jar_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ResetJarResponse:
    count = await IdeaService(db).reset_jar(jar_id, user)
    return ResetJarResponse(success=True, message=f"Cleared {count} ideas from the jar.", count=count)


@jar_ideas_router.post("/{jar_id}/ideas/generate", response_model=GenerateIdeasResponse)
async def generate_ideas(
    jar_id: UUID,
    request: GenerateIdeasRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> GenerateIdeasResponse:
    """Suggest new ideas for the jar. Nothing is saved."""
    suggestions, source = await IdeaGenerationService(db).generate_ideas(
        jar_id,
        user,
        category=request.category,
        count=request.count,
        prompt=request.prompt,
    )
    return GenerateIdeasResponse(
        ideas=[IdeaSuggestion(**suggestion) for suggestion in suggestions],
        source=source,
    )


@router.put("/{idea_id}", response_model=IdeaResponse)
async def update_idea(
    idea_id: UUID,
    request: UpdateIdeaRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IdeaResponse:
    """Edit an idea. Author only."""
    idea = await IdeaService(db).update_idea(idea_id, user, **request.model_dump(exclude_unset=True))
    return IdeaResponse.model_validate(idea)


@router.delete("/{idea_id}", response_model=SuccessResponse)
async def delete_idea(
    idea_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    await IdeaService(db).delete_idea(idea_id, user)
    return SuccessResponse(success=True)
