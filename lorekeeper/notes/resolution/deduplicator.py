"""Deduplication of candidates returned by the inference call."""

from lorekeeper.notes.models import CandidateEntity


class ExtractionDeduplicator:
    """Collapse candidates that share a kind and normalized text."""

    def deduplicate(self, candidates: list[CandidateEntity]) -> list[CandidateEntity]:
        """Keep one candidate per `(kind, normalized text)` key.

        Candidates are folded in order. A later duplicate replaces the kept
        one in place only when its confidence is strictly higher, so on a
        tie the first-seen candidate wins. Fields are never merged.

        Args:
            candidates: Raw candidates, duplicates allowed.

        Returns:
            At most one candidate per key.
        """
        kept: dict[tuple, CandidateEntity] = {}

        for candidate in candidates:
            key = candidate.dedup_key
            current = kept.get(key)
            if current is None or candidate.confidence > current.confidence:
                kept[key] = candidate

        return list(kept.values())
