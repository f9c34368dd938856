"""Note entity pipeline: reference lookup, quota-gated extraction, reconciliation."""

import logging
import time
from typing import Optional

from lorekeeper.core.config import settings
from lorekeeper.errors import (
    ContentTooLong,
    ContentTooShort,
    EntityNotFound,
    InferenceFailure,
    NoteNotFound,
    QuotaExceeded,
    QuotaUnavailable,
)
from lorekeeper.notes.config import NotesConfig, default_config
from lorekeeper.notes.matching.reference_matcher import ReferenceMatcher
from lorekeeper.notes.models import (
    CandidateEntity,
    ExistingReference,
    ExtractionOutcome,
    Note,
)
from lorekeeper.notes.resolution.deduplicator import ExtractionDeduplicator
from lorekeeper.notes.resolution.reconciler import CampaignReconciler
from lorekeeper.notes.stores import (
    ElementRepository,
    InferenceService,
    NoteStore,
    QuotaService,
)
from lorekeeper.quota.models import ContactInfo, UsageStatus

logger = logging.getLogger(__name__)


class NoteEntityPipeline:
    """Sequences quota, inference, deduplication, reconciliation and persistence."""

    def __init__(
        self,
        notes: NoteStore,
        repository: ElementRepository,
        inference: InferenceService,
        quota: QuotaService,
        config: Optional[NotesConfig] = None,
        contact: Optional[ContactInfo] = None,
    ):
        """Initialize the pipeline.

        Args:
            notes: Note store.
            repository: Campaign element repository.
            inference: Candidate extraction service.
            quota: Authoritative usage quota.
            config: Pipeline configuration. Uses defaults if None.
            contact: Payload attached to limit rejections. Uses settings if None.
        """
        self.config = config or default_config
        self.notes = notes
        self.inference = inference
        self.quota = quota
        self.contact = contact or ContactInfo(
            message=settings.contact_message,
            contact_url=settings.contact_url,
            prefilled_subject=settings.contact_subject,
        )

        self.matcher = ReferenceMatcher(repository)
        self.deduplicator = ExtractionDeduplicator()
        self.reconciler = CampaignReconciler(repository, self.config)

    async def find_references(self, note_id: str) -> list[ExistingReference]:
        """Campaign elements mentioned in a note. Never consumes quota."""
        note = await self._get_note(note_id)
        return await self.matcher.find_references(note.content)

    async def get_stored_suggestions(self, note_id: str) -> list[CandidateEntity]:
        """Stored candidates worth showing when a note is reopened.

        Converted candidates always stay; unconverted ones that now match
        an existing reference are hidden.
        """
        note = await self._get_note(note_id)
        references = await self.matcher.find_references(note.content)
        visible = {
            c.id for c in self.reconciler.filter_references(note.candidates, references)
        }
        return [c for c in note.candidates if c.is_converted or c.id in visible]

    async def extract_new_entities(self, note_id: str, user_id: str) -> ExtractionOutcome:
        """Run one quota-gated extraction over a note.

        Steps run strictly in order: length check, quota reservation,
        clearing the previous unconverted suggestions, inference,
        deduplication, reconciliation, persistence. A reserved quota unit
        is spent even when a later step fails.

        Args:
            note_id: Note to analyse.
            user_id: User the quota is charged to.

        Returns:
            ExtractionOutcome with the new candidates and statistics.

        Raises:
            NoteNotFound: If the note does not exist.
            ContentTooShort / ContentTooLong: Before any quota is reserved.
            QuotaExceeded: A usage window is full; nothing was called.
            QuotaUnavailable: Usage could not be checked; nothing was called.
            InferenceFailure: The inference call failed; the note keeps only
                its converted candidates.
        """
        start_time = time.time()

        note = await self._get_note(note_id)
        self._validate_content(note.content)

        references = await self.matcher.find_references(note.content)

        status = await self._reserve(user_id)
        if status.limit_exceeded:
            raise QuotaExceeded(status, self.contact)

        # Cleared only once a unit is reserved, so a rejected call keeps the
        # previous run's unconverted suggestions
        await self.notes.replace_suggestions(note_id, [])

        try:
            raw_entities = await self.inference.extract(note.content)
        except (QuotaExceeded, InferenceFailure) as e:
            logger.error(f"Extraction failed for note {note_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Extraction failed for note {note_id}: {e}")
            raise InferenceFailure() from e

        fresh = [e for e in raw_entities if not e.is_converted]
        unique = self.deduplicator.deduplicate(fresh)
        new_entities, stats = await self.reconciler.reconcile(unique, references)

        await self.notes.replace_suggestions(note_id, new_entities)

        logger.info(
            f"Extracted {stats.total_found} candidates from note {note_id}, "
            f"{stats.filtered_out} already known"
        )

        return ExtractionOutcome(
            new_entities=new_entities,
            stats=stats,
            usage=status,
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    async def mark_entity_converted(
        self,
        note_id: str,
        entity_id: str,
        converted_to_id: str,
    ) -> CandidateEntity:
        """Record that a candidate became a campaign element."""
        entity = await self.notes.mark_entity_converted(note_id, entity_id, converted_to_id)
        if entity is None:
            raise EntityNotFound(note_id, entity_id)
        return entity

    async def get_usage_status(self, user_id: str) -> UsageStatus:
        """Current usage snapshot; does not consume quota."""
        try:
            return await self.quota.read_status(user_id)
        except QuotaUnavailable:
            raise
        except Exception as e:
            logger.error(f"Usage status unavailable for user {user_id}: {e}")
            raise QuotaUnavailable() from e

    async def _reserve(self, user_id: str) -> UsageStatus:
        # Fail closed: an unreachable quota never means unlimited
        try:
            return await self.quota.check_and_reserve(user_id)
        except QuotaUnavailable:
            raise
        except Exception as e:
            logger.error(f"Quota check failed for user {user_id}: {e}")
            raise QuotaUnavailable() from e

    async def _get_note(self, note_id: str) -> Note:
        note = await self.notes.get_note(note_id)
        if note is None:
            raise NoteNotFound(note_id)
        return note

    def _validate_content(self, content: str) -> None:
        length = len(content.strip())
        if length < self.config.min_content_length:
            raise ContentTooShort(self.config.min_content_length, length)
        if length > self.config.max_content_length:
            raise ContentTooLong(self.config.max_content_length, length)
