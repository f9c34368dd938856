"""Failures raised by the note entity pipeline and the quota engine."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from lorekeeper.quota.models import ContactInfo, UsageStatus


class NoteExtractionError(Exception):
    """Base class for pipeline failures."""

    user_message = "Entity extraction failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class ContentLengthError(NoteExtractionError):
    """Note content outside the accepted length bounds."""


class ContentTooShort(ContentLengthError):
    """Note content below the minimum analysable length."""

    def __init__(self, min_length: int, actual: int):
        self.min_length = min_length
        self.actual = actual
        self.user_message = (
            f"Note content is too short for analysis (minimum {min_length} characters)"
        )
        super().__init__(self.user_message)


class ContentTooLong(ContentLengthError):
    """Note content above the maximum analysable length."""

    def __init__(self, max_length: int, actual: int):
        self.max_length = max_length
        self.actual = actual
        self.user_message = f"Content too long (max {max_length} characters)"
        super().__init__(self.user_message)


class QuotaExceeded(NoteExtractionError):
    """A usage window is full; carries the status and where to ask for more."""

    code = "USAGE_LIMIT_EXCEEDED"

    def __init__(self, status: "UsageStatus", contact: "ContactInfo"):
        self.status = status
        self.contact = contact
        period = status.exceeded_period.value if status.exceeded_period else "usage"
        self.user_message = f"Entity extraction {period} limit exceeded"
        super().__init__(self.user_message)


class QuotaUnavailable(NoteExtractionError):
    """Usage could not be checked; extraction is unavailable."""

    user_message = "Entity extraction is temporarily unavailable"


class InferenceFailure(NoteExtractionError):
    """The inference call timed out, failed, or returned malformed output."""


class RepositoryUnavailable(NoteExtractionError):
    """The campaign element repository could not be read."""

    user_message = "Campaign elements could not be loaded"


class NoteNotFound(NoteExtractionError):
    def __init__(self, note_id: str):
        self.note_id = note_id
        self.user_message = f"Note not found: {note_id}"
        super().__init__(self.user_message)


class EntityNotFound(NoteExtractionError):
    def __init__(self, note_id: str, entity_id: str):
        self.note_id = note_id
        self.entity_id = entity_id
        self.user_message = f"Entity {entity_id} not found on note {note_id}"
        super().__init__(self.user_message)
