"""
Shared error types for core services.
"""


class ValidationIssue(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class NotFoundError(LookupError):
    """Base class for lookups that found nothing in the caller's organization."""

    resource = "resource"

    def __init__(self, message: str | None = None, resource_id: str | None = None):
        super().__init__(message or f"{self.resource} not found")
        self.resource_id = resource_id


class ContentNotFound(NotFoundError):
    resource = "content"


class SourceNotFound(NotFoundError):
    resource = "source_content"


class VersionNotFound(NotFoundError):
    resource = "content_version"


class SectionNotFound(NotFoundError):
    resource = "section"


class ChatSessionNotFound(NotFoundError):
    resource = "chat_session"


class WriteNotAllowed(PermissionError):
    """Raised when a write is attempted from a read-only (chat) caller."""


class GenerationFailure(RuntimeError):
    """Raised when the content generator fails or returns unusable output."""


class ImmutableVersionError(RuntimeError):
    """Raised when a persisted content version would be modified."""
