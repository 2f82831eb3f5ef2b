"""Error types raised by the tutor core.

Every error carries a machine-readable ``kind`` next to the human message so
the CLI (or any other caller) can branch without parsing text.
"""


class TutorError(Exception):
    """Base class for all tutor errors."""

    default_kind = "error"

    def __init__(self, message: str, kind: str | None = None):
        super().__init__(message)
        self.kind = kind or self.default_kind

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(TutorError):
    """Malformed import document, bank file, or empty selection."""

    default_kind = "invalid"


class NotFoundError(TutorError):
    """Unknown exam id or subject code."""

    default_kind = "not_found"


class GradingServiceError(TutorError):
    """The external grader failed, timed out, or answered with garbage."""

    default_kind = "grading_failed"


class ConcurrencyError(TutorError):
    """A stored record changed between read and write."""

    default_kind = "conflict"


class ConfigurationError(TutorError):
    """Required settings (e.g. grader credentials) are missing or invalid."""

    default_kind = "configuration"
