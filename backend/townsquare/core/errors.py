"""
Domain errors raised by the messaging and moderation services.

Every error is scoped to a single request. Routes never catch these; the
handler registered in ``townsquare.main`` turns them into JSON responses
using ``status_code`` and ``code``.
"""


class DomainError(Exception):
    """Base class for user-visible service failures."""

    status_code: int = 400
    code: str = "ERROR"
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class UnauthorizedError(DomainError):
    """No authenticated principal."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_detail = "Not authenticated"


class ForbiddenError(DomainError):
    """Principal lacks the role, membership or account standing required."""

    status_code = 403
    code = "FORBIDDEN"
    default_detail = "Not enough permissions"


class NotFoundError(DomainError):
    """
    Entity absent, or not addressed to the caller.

    Both cases share this error so callers cannot probe for existence.
    """

    status_code = 404
    code = "NOT_FOUND"
    default_detail = "Not found"


class BlockedError(DomainError):
    """Messaging between the pair is gated by a block in either direction."""

    status_code = 403
    code = "BLOCKED"
    default_detail = "Messaging is blocked between these users"


class NotActiveError(DomainError):
    """Conversation has not been accepted yet."""

    status_code = 403
    code = "NOT_ACTIVE"
    default_detail = "Conversation is not active"


class InvalidInputError(DomainError):
    """Empty body, missing enum value and similar."""

    status_code = 400
    code = "INVALID_INPUT"
    default_detail = "Invalid input"


class InvalidTargetError(InvalidInputError):
    """Operation targets the caller itself or an unsupported kind."""

    code = "INVALID_TARGET"
    default_detail = "Invalid target"


class ConflictError(DomainError):
    """
    Duplicate creation lost a race.

    Services resolve this internally by re-reading the winning row; it only
    escapes when the re-read also fails.
    """

    status_code = 409
    code = "CONFLICT"
    default_detail = "Conflicting update"
