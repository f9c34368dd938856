"""Shared fixtures and in-memory collaborators for the note pipeline."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from lorekeeper.api.dependencies import get_pipeline, get_quota_engine
from lorekeeper.api.main import app
from lorekeeper.graph.schema import ElementKind
from lorekeeper.notes import NoteEntityPipeline
from lorekeeper.notes.models import CampaignElement, CandidateEntity, Note
from lorekeeper.quota import InMemoryQuotaStore, QuotaEngine, UsagePeriod


LONG_NOTE = (
    "We met Lord Blackthorn near Waterdeep. He asked us to recover the "
    "Amulet of Dawn from the Sunken Temple before the new moon."
)


def candidate(
    text: str,
    kind: ElementKind = ElementKind.NPC,
    confidence: float = 0.8,
    entity_id: Optional[str] = None,
    **kwargs,
) -> CandidateEntity:
    """Build a candidate with a readable default id."""
    return CandidateEntity(
        id=entity_id or f"{kind.value}-{text.lower().replace(' ', '-')}-{confidence}",
        text=text,
        kind=kind,
        confidence=confidence,
        **kwargs,
    )


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeElementRepository:
    """Element repository over plain lists."""

    def __init__(self, elements: Optional[list[CampaignElement]] = None):
        self.elements = list(elements or [])
        self.fail = False
        self.calls = 0

    async def get_collection(self, kind: ElementKind) -> list[CampaignElement]:
        self.calls += 1
        if self.fail:
            raise ConnectionError("repository offline")
        return [e for e in self.elements if e.kind == kind]


class FakeNoteStore:
    """Note store that keeps notes in a dict."""

    def __init__(self, notes: Optional[list[Note]] = None):
        self.notes = {n.id: n for n in notes or []}
        self.replace_calls: list[list[CandidateEntity]] = []

    async def get_note(self, note_id: str) -> Optional[Note]:
        note = self.notes.get(note_id)
        return note.model_copy(deep=True) if note else None

    async def update_note(self, note_id: str, fields: dict) -> None:
        self.notes[note_id] = self.notes[note_id].model_copy(update=fields)

    async def replace_suggestions(
        self, note_id: str, entities: list[CandidateEntity]
    ) -> None:
        self.replace_calls.append(list(entities))
        note = self.notes[note_id]
        note.candidates = note.converted_candidates + [
            e for e in entities if not e.is_converted
        ]

    async def mark_entity_converted(
        self, note_id: str, entity_id: str, converted_to_id: str
    ) -> Optional[CandidateEntity]:
        note = self.notes.get(note_id)
        if note is None:
            return None
        for entity in note.candidates:
            if entity.id == entity_id:
                if not entity.is_converted:
                    entity.is_converted = True
                    entity.converted_to_id = converted_to_id
                return entity
        return None


class FakeInference:
    """Inference service returning canned candidates."""

    def __init__(self, results: Optional[list[CandidateEntity]] = None):
        self.results = list(results or [])
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    async def extract(self, text: str) -> list[CandidateEntity]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return [e.model_copy(deep=True) for e in self.results]


@pytest.fixture
def clock():
    """A controllable clock."""
    return FakeClock()


@pytest.fixture
def quota_engine(clock):
    """Quota engine with 3/5/8 limits over an in-memory store."""
    return QuotaEngine(
        store=InMemoryQuotaStore(),
        limits={
            UsagePeriod.DAILY: 3,
            UsagePeriod.WEEKLY: 5,
            UsagePeriod.MONTHLY: 8,
        },
        clock=clock,
    )


@pytest.fixture
def campaign_elements():
    """A small campaign."""
    return [
        CampaignElement(id="npc-1", kind=ElementKind.NPC, name="Blackthorn"),
        CampaignElement(id="npc-2", kind=ElementKind.NPC, name="Gandalf", title="The Grey"),
        CampaignElement(id="loc-1", kind=ElementKind.LOCATION, name="Neverwinter"),
        CampaignElement(id="loc-2", kind=ElementKind.LOCATION, name="Waterdeep"),
        CampaignElement(id="quest-1", kind=ElementKind.QUEST, title="The Amulet of Dawn"),
    ]


@pytest.fixture
def make_candidate():
    """Factory for candidates."""
    return candidate


@pytest.fixture
def element_repository(campaign_elements):
    """Repository over the sample campaign."""
    return FakeElementRepository(campaign_elements)


@pytest.fixture
def note():
    """A note long enough to analyse, with one converted candidate."""
    return Note(
        id="note-1",
        title="Session 4",
        content=LONG_NOTE,
        candidates=[
            candidate("Sunken Temple", ElementKind.LOCATION, 0.9,
                      entity_id="loc-converted", is_converted=True,
                      converted_to_id="loc-99"),
            candidate("Old Suggestion", ElementKind.NPC, 0.7, entity_id="npc-old"),
        ],
    )


@pytest.fixture
def note_store(note):
    """Store holding the sample note plus a short one."""
    return FakeNoteStore([note, Note(id="note-short", content="Too short.")])


@pytest.fixture
def inference():
    """Inference service with no canned results."""
    return FakeInference()


@pytest.fixture
def pipeline(note_store, element_repository, inference, quota_engine):
    """Pipeline over in-memory collaborators."""
    return NoteEntityPipeline(
        notes=note_store,
        repository=element_repository,
        inference=inference,
        quota=quota_engine,
    )


@pytest.fixture
def client(pipeline, quota_engine):
    """Create test client with service overrides."""
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_quota_engine] = lambda: quota_engine
    yield TestClient(app)
    app.dependency_overrides.clear()
