"""Note entity reconciliation for D&D campaign notes.

This module links free-text session notes to the campaign:
- Reference matching of existing NPCs, locations, quests and rumors
- LLM-based extraction of new candidate elements
- Deduplication and reconciliation against what the campaign already tracks
- Quota-gated orchestration of the whole run
"""

from lorekeeper.notes.config import NotesConfig, default_config
from lorekeeper.notes.models import (
    CampaignElement,
    CandidateEntity,
    ExistingReference,
    ExtractionOutcome,
    ExtractionStats,
    Note,
)
from lorekeeper.notes.normalizer import normalize
from lorekeeper.notes.pipeline import NoteEntityPipeline

__all__ = [
    # Main pipeline
    "NoteEntityPipeline",
    # Configuration
    "NotesConfig",
    "default_config",
    # Models
    "CampaignElement",
    "CandidateEntity",
    "ExistingReference",
    "ExtractionOutcome",
    "ExtractionStats",
    "Note",
    # Text
    "normalize",
]
