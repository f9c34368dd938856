"""Reference matching between notes and campaign elements."""

from lorekeeper.notes.matching.reference_matcher import ReferenceMatcher

__all__ = ["ReferenceMatcher"]
