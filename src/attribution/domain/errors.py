"""Domain-specific exception classes for the attribution service.

Each class carries the HTTP status code the API layer answers with, so the
services can raise without knowing anything about FastAPI.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """A single violated input field."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class AttributionError(Exception):
    """Base class for all domain errors in the attribution service."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AttributionError):
    """Raised when client input is missing or malformed.

    Attributes:
        details: One entry per violated field, in the order they were checked.
    """

    status_code = 400

    def __init__(self, details: list[FieldError], message: str = "Validation failed") -> None:
        self.details = list(details)
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        """Build an error for a single violated field."""
        return cls([FieldError(field, message)])


class NotFoundError(AttributionError):
    """Raised when a campaign or script is absent or inactive."""

    status_code = 404


class UnsupportedTemplateError(AttributionError):
    """Raised when a campaign's template type has no renderer.

    Attributes:
        template_type: The rejected template type string.
    """

    status_code = 400

    def __init__(self, template_type: str) -> None:
        self.template_type = template_type
        super().__init__(f"Unsupported template type '{template_type}'")


class PersistenceError(AttributionError):
    """Raised when the storage backend fails.

    The message is generic; the underlying driver error is chained as
    ``__cause__`` and only ever logged.
    """

    status_code = 500

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Storage operation failed: {operation}")


class InvalidTransitionError(AttributionError):
    """Raised when a client decision step is applied in the wrong state.

    Attributes:
        current_state: The state the engine was in.
        step: The step that was rejected.
    """

    def __init__(self, current_state: str, step: str) -> None:
        self.current_state = current_state
        self.step = step
        super().__init__(f"Cannot apply step '{step}' in state '{current_state}'")
