"""Find existing campaign elements mentioned in a note."""

import logging
from typing import Optional

import ahocorasick

from lorekeeper.notes.models import CampaignElement, ExistingReference
from lorekeeper.notes.normalizer import normalize
from lorekeeper.notes.stores import ElementRepository, load_all_elements

logger = logging.getLogger(__name__)


class ReferenceMatcher:
    """Substring matching of element names and titles against note text."""

    def __init__(self, repository: Optional[ElementRepository] = None):
        """Initialize the matcher.

        Args:
            repository: Source of campaign elements for `find_references`.
        """
        self.repository = repository

    async def find_references(self, text: str) -> list[ExistingReference]:
        """Match a note against every element in the repository.

        References are best-effort: an unreachable repository yields an
        empty result instead of an error.
        """
        if self.repository is None:
            return []

        try:
            elements = await load_all_elements(self.repository)
        except Exception as e:
            logger.warning(f"Reference lookup skipped, repository unavailable: {e}")
            return []

        return self.match(text, elements)

    def match(
        self,
        text: str,
        elements: list[CampaignElement],
    ) -> list[ExistingReference]:
        """Find elements whose name or title occurs in the text.

        Both sides are normalized and compared by plain containment, so
        "Blackthorn" matches "Lord Blackthorn the Wise" but no stemming or
        word-boundary rules apply.

        Args:
            text: Note body.
            elements: Candidate campaign elements of any kind.

        Returns:
            One reference per matched element, in element order.
        """
        body = normalize(text)
        if not body or not elements:
            return []

        automaton = ahocorasick.Automaton()
        for index, element in enumerate(elements):
            for candidate in element.candidate_strings:
                key = normalize(candidate)
                if automaton.exists(key):
                    automaton.get(key).append((index, candidate))
                else:
                    automaton.add_word(key, [(index, candidate)])

        if len(automaton) == 0:
            return []
        automaton.make_automaton()

        matched: dict[int, set[str]] = {}
        for _, hits in automaton.iter(body):
            for index, candidate in hits:
                matched.setdefault(index, set()).add(candidate)

        references = []
        for index in sorted(matched):
            element = elements[index]
            references.append(
                ExistingReference(
                    element_id=element.id,
                    kind=element.kind,
                    display_title=element.display_title,
                    # Keep name-then-title order
                    matched_strings=[
                        s for s in element.candidate_strings if s in matched[index]
                    ],
                )
            )

        return references
