"""Drop candidates that duplicate something the campaign already tracks."""

import logging
from typing import Optional

from lorekeeper.graph.schema import ElementKind
from lorekeeper.notes.config import NotesConfig, default_config
from lorekeeper.notes.models import (
    CampaignElement,
    CandidateEntity,
    ExistingReference,
    ExtractionStats,
)
from lorekeeper.notes.normalizer import contains_either_way, normalize
from lorekeeper.notes.stores import ElementRepository, load_all_elements

logger = logging.getLogger(__name__)


class CampaignReconciler:
    """Filter deduplicated candidates against references and stored elements."""

    def __init__(
        self,
        repository: Optional[ElementRepository] = None,
        config: Optional[NotesConfig] = None,
    ):
        """Initialize the reconciler.

        Args:
            repository: Source of campaign elements for the exact-name pass.
            config: Pipeline configuration. Uses defaults if None.
        """
        self.repository = repository
        self.config = config or default_config

    async def reconcile(
        self,
        candidates: list[CandidateEntity],
        references: list[ExistingReference],
    ) -> tuple[list[CandidateEntity], ExtractionStats]:
        """Return the genuinely new candidates plus filtering statistics.

        Args:
            candidates: Deduplicated candidates.
            references: References already found in the note.

        Returns:
            Tuple of (new candidates, stats).
        """
        remaining = candidates
        if self.config.use_reference_filter:
            remaining = self.filter_references(remaining, references)

        if self.config.use_campaign_filter and self.repository is not None:
            try:
                elements = await load_all_elements(self.repository)
            except Exception as e:
                # Keep the reference pass result rather than failing the extraction
                logger.warning(f"Campaign element filter skipped: {e}")
            else:
                remaining = self.filter_elements(remaining, elements)

        stats = ExtractionStats(
            total_found=len(candidates),
            filtered_out=len(candidates) - len(remaining),
        )
        return remaining, stats

    def filter_references(
        self,
        candidates: list[CandidateEntity],
        references: list[ExistingReference],
    ) -> list[CandidateEntity]:
        """Drop candidates contained in, or containing, a same-kind reference string."""
        by_kind: dict[ElementKind, list[str]] = {}
        for reference in references:
            keys = by_kind.setdefault(reference.kind, [])
            keys.extend(
                key for key in map(normalize, reference.matched_strings) if key
            )

        return [
            c for c in candidates
            if not self.matches_reference(c, by_kind.get(c.kind, []))
        ]

    @staticmethod
    def matches_reference(candidate: CandidateEntity, reference_keys: list[str]) -> bool:
        text = normalize(candidate.text)
        return any(contains_either_way(text, key) for key in reference_keys)

    def filter_elements(
        self,
        candidates: list[CandidateEntity],
        elements: list[CampaignElement],
    ) -> list[CandidateEntity]:
        """Drop candidates whose text equals a same-kind element's name or title."""
        known: set[tuple[ElementKind, str]] = set()
        for element in elements:
            for value in (element.name, element.title):
                key = normalize(value or "")
                if key:
                    known.add((element.kind, key))

        return [c for c in candidates if c.dedup_key not in known]
