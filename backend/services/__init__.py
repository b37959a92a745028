from backend.services.auth_service import AuthService, AuthError
from backend.services.notification_service import NotificationService
from backend.services.gamification_service import GamificationService, XpAward
from backend.services.jar_service import JarService
from backend.services.idea_service import IdeaService
from backend.services.vote_service import (
    VoteService,
    NoVotesOutcome,
    WinnerOutcome,
    RunoffOutcome,
    StartVoteResult,
    tally_votes,
    leading_ideas,
)

# AI services
from backend.services.ai.idea_generation_service import IdeaGenerationService
