"""Domain exceptions raised by services and rendered as ``{"error": ...}`` responses."""


class DecisionJarError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


# 401
class UnauthorizedError(DecisionJarError):
    status_code = 401
    default_message = "Unauthorized"


# 403
class ForbiddenError(DecisionJarError):
    status_code = 403
    default_message = "Admin only"


class NotAMemberError(ForbiddenError):
    default_message = "Not a member"


class LimitReachedError(ForbiddenError):
    default_message = "Plan limit reached"


class VoteLockedError(ForbiddenError):
    """Raised when a jar refuses new ideas because a vote is running."""
    default_message = (
        "Cannot add new ideas while a vote is in progress. "
        "Please wait for the voting round to finish."
    )


# 404
class NotFoundError(DecisionJarError):
    status_code = 404
    default_message = "Not found"


class JarNotFoundError(NotFoundError):
    default_message = "Jar not found"


class IdeaNotFoundError(NotFoundError):
    default_message = "Idea not found"


class MemberNotFoundError(NotFoundError):
    default_message = "Member not found in this jar"


class NoMatchingIdeasError(NotFoundError):
    default_message = "No matching ideas found"


class NoActiveVoteError(NotFoundError):
    """No ACTIVE vote session. Casting reports it as 400, admin actions as 404."""
    default_message = "No active vote"


# 400
class BadRequestError(DecisionJarError):
    status_code = 400
    default_message = "Bad request"


class VoteAlreadyInProgressError(BadRequestError):
    default_message = "A vote is already in progress"


class VoteWindowClosedError(BadRequestError):
    default_message = "Voting time has ended"


class AlreadyVotedError(BadRequestError):
    default_message = "You have already voted"


class IdeaIneligibleError(BadRequestError):
    default_message = "Idea not eligible for this vote"


class SelfVoteError(BadRequestError):
    default_message = "You cannot vote for your own idea!"


class NoTimeLimitError(BadRequestError):
    default_message = "Vote has no time limit to extend"


class EmptyJarError(BadRequestError):
    default_message = "Jar is empty! Add ideas first."


class InvalidCategoryError(BadRequestError):
    default_message = "Category is not allowed in this jar"


class InvalidCredentialsError(UnauthorizedError):
    default_message = "Email/password combination is invalid"


# 409
class InvalidTransitionError(DecisionJarError):
    status_code = 409
    default_message = "Illegal vote session status change"


# 502
class AIServiceError(DecisionJarError):
    status_code = 502
    default_message = "Idea generation failed"
