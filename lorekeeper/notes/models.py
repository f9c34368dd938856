"""Data models for note reference matching and entity extraction."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from lorekeeper.graph.schema import ElementKind
from lorekeeper.notes.normalizer import normalize
from lorekeeper.quota.models import UsageStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CandidateEntity(BaseModel):
    """A possible campaign element found in a note, not yet confirmed."""

    id: str
    text: str  # Text as reported by the inference call
    kind: ElementKind
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    is_converted: bool = False
    converted_to_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    extra: dict = Field(default_factory=dict)  # Kind-specific details

    @property
    def dedup_key(self) -> tuple[ElementKind, str]:
        return (self.kind, normalize(self.text))


class CampaignElement(BaseModel):
    """An existing NPC, location, quest or rumor."""

    id: str
    kind: ElementKind
    name: Optional[str] = None
    title: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.name or self.title or f"{self.kind.value} {self.id}"

    @property
    def candidate_strings(self) -> list[str]:
        """Name, then title when it normalizes differently."""
        strings = []
        seen = set()
        for value in (self.name, self.title):
            if not value:
                continue
            key = normalize(value)
            if key and key not in seen:
                seen.add(key)
                strings.append(value)
        return strings


class ExistingReference(BaseModel):
    """A campaign element mentioned in a note."""

    element_id: str
    kind: ElementKind
    display_title: str
    matched_strings: list[str] = Field(default_factory=list)


class Note(BaseModel):
    """A free-text session note and its stored suggestions."""

    id: str
    title: str = ""
    content: str = ""
    campaign_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: str = "active"  # active, archived
    candidates: list[CandidateEntity] = Field(default_factory=list)

    @property
    def converted_candidates(self) -> list[CandidateEntity]:
        return [c for c in self.candidates if c.is_converted]


class ExtractionStats(BaseModel):
    """Counts reported after an extraction."""

    total_found: int = 0  # After deduplication
    filtered_out: int = 0


class ExtractionOutcome(BaseModel):
    """Result of one extraction request."""

    new_entities: list[CandidateEntity] = Field(default_factory=list)
    stats: ExtractionStats = Field(default_factory=ExtractionStats)
    usage: Optional[UsageStatus] = None
    processing_time_ms: float = 0.0
