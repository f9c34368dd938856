"""Text normalization shared by every comparison in the note pipeline."""

import re

_SEPARATOR = " "
_SEPARATOR_RUN = re.compile(r"[\W_]+")
_LEADING_ARTICLES = re.compile(r"^(?:(?:the|a|an) )+")


def normalize(text: str) -> str:
    """Canonicalize text for equality and containment checks.

    Lower-cases, collapses every run of punctuation/whitespace into a single
    space, trims it, and strips leading articles ("the", "a", "an").
    The result is stable under repeated application.
    """
    if not text:
        return ""

    key = _SEPARATOR_RUN.sub(_SEPARATOR, str(text).lower()).strip(_SEPARATOR)
    return _LEADING_ARTICLES.sub("", key)


def contains_either_way(left: str, right: str) -> bool:
    """True when either normalized key is a substring of the other."""
    return left in right or right in left
