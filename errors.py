"""Exception hierarchy for battle operations.

Every failure a battle operation can report is a subclass of ``BattleError``.
The message is safe to show to the caller; command handlers reply with it
directly.
"""


class BattleError(Exception):
    """Base exception for all battle failures."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthorizedError(BattleError):
    """Raised when no verified caller identity is available."""

    kind = "unauthorized"

    def __init__(self, message: str = "You need to be signed in to do that."):
        super().__init__(message)


class InvalidInputError(BattleError):
    """Raised for malformed or missing required fields."""

    kind = "invalid_input"


class NotFoundError(BattleError):
    """Raised when a battle, question, note or participant is not visible to the caller."""

    kind = "not_found"


class ForbiddenError(BattleError):
    """Raised when the caller is not a party to the battle."""

    kind = "forbidden"

    def __init__(self, message: str = "You're not a participant in this battle."):
        super().__init__(message)


class ConflictError(BattleError):
    """Raised when the battle's current state rejects the request."""

    kind = "conflict"


class GenerationFailedError(BattleError):
    """Raised when question generation produced nothing usable."""

    kind = "generation_failed"

    def __init__(self, message: str = "Failed to generate battle questions. Try again with different material."):
        super().__init__(message)


class DependencyUnavailableError(BattleError):
    """Raised when storage or the generation service can't be reached."""

    kind = "dependency_unavailable"

    def __init__(self, dependency: str, detail: str = ""):
        self.dependency = dependency
        self.detail = detail
        super().__init__(f"The {dependency} is unavailable right now. Please try again later.")
