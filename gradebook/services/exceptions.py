"""Errors raised by the score services. Each carries a stable code and a readable message."""


class ScoreServiceError(Exception):
    """Base exception for score service errors."""

    code = "SCORE_ERROR"

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.message = message
        # Position of the offending entry in a batch request
        self.index = index

    def to_detail(self) -> dict[str, str | int]:
        detail: dict[str, str | int] = {"code": self.code, "message": self.message}
        if self.index is not None:
            detail["index"] = self.index
        return detail


class ScoreValidationError(ScoreServiceError):
    """Malformed or out-of-range score, or a reference (exam, student, course) that does not exist."""

    code = "VALIDATION_ERROR"


class DuplicateScoreError(ScoreValidationError):
    """A live score already exists for the (exam, student, course) key."""

    code = "DUPLICATE_SCORE"


class ScoreNotFoundError(ScoreServiceError):
    code = "NOT_FOUND"


class ConfigurationMissingError(ScoreServiceError):
    """Course threshold configuration cannot be resolved."""

    code = "CONFIGURATION_MISSING"


class ConcurrencyConflictError(ScoreServiceError):
    """Ranks could not be written against a consistent snapshot of the scope."""

    code = "CONCURRENCY_CONFLICT"
