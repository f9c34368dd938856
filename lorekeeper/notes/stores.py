"""Collaborators of the note pipeline and their graph-backed implementations."""

import asyncio
import json
from datetime import datetime
from typing import Optional, Protocol

from lorekeeper.graph.operations import CampaignGraphOps
from lorekeeper.graph.schema import ElementKind
from lorekeeper.errors import RepositoryUnavailable
from lorekeeper.notes.models import CampaignElement, CandidateEntity, Note
from lorekeeper.quota.models import UsageStatus


class ElementRepository(Protocol):
    """Read-only access to campaign elements."""

    async def get_collection(self, kind: ElementKind) -> list[CampaignElement]: ...


class NoteStore(Protocol):
    """Note persistence."""

    async def get_note(self, note_id: str) -> Optional[Note]: ...

    async def update_note(self, note_id: str, fields: dict) -> None: ...

    async def replace_suggestions(
        self, note_id: str, entities: list[CandidateEntity]
    ) -> None: ...

    async def mark_entity_converted(
        self, note_id: str, entity_id: str, converted_to_id: str
    ) -> Optional[CandidateEntity]: ...


class InferenceService(Protocol):
    """Opaque `text -> candidate entities` call."""

    async def extract(self, text: str) -> list[CandidateEntity]: ...


class QuotaService(Protocol):
    """Authoritative usage quota."""

    async def check_and_reserve(self, user_id: str) -> UsageStatus: ...

    async def read_status(self, user_id: str) -> UsageStatus: ...


def candidate_to_properties(entity: CandidateEntity) -> dict:
    """Flatten a candidate into graph-storable properties."""
    return {
        "id": entity.id,
        "text": entity.text,
        "kind": entity.kind.value,
        "confidence": entity.confidence,
        "is_converted": entity.is_converted,
        "converted_to_id": entity.converted_to_id,
        "created_at": entity.created_at.isoformat(),
        # Nested maps are not valid property values
        "extra_json": json.dumps(entity.extra, default=str),
    }


def candidate_from_properties(props: dict) -> CandidateEntity:
    """Rebuild a candidate from stored properties."""
    entity = CandidateEntity(
        id=props["id"],
        text=props.get("text", ""),
        kind=ElementKind(props["kind"]),
        confidence=props.get("confidence", 0.5),
        is_converted=bool(props.get("is_converted", False)),
        converted_to_id=props.get("converted_to_id"),
        extra=json.loads(props.get("extra_json") or "{}"),
    )
    if props.get("created_at"):
        entity.created_at = datetime.fromisoformat(props["created_at"])
    return entity


class GraphElementRepository:
    """Campaign elements read from the graph."""

    def __init__(self, graph_ops: Optional[CampaignGraphOps] = None):
        self.graph_ops = graph_ops or CampaignGraphOps()

    async def get_collection(self, kind: ElementKind) -> list[CampaignElement]:
        return [
            CampaignElement(
                id=props["id"],
                kind=kind,
                name=props.get("name"),
                title=props.get("title"),
            )
            for props in self.graph_ops.list_elements(kind)
        ]


class GraphNoteStore:
    """Notes and their candidates stored in the graph."""

    _NOTE_FIELDS = {"title", "content", "campaign_id", "tags", "status"}

    def __init__(self, graph_ops: Optional[CampaignGraphOps] = None):
        self.graph_ops = graph_ops or CampaignGraphOps()

    async def get_note(self, note_id: str) -> Optional[Note]:
        props = self.graph_ops.get_note(note_id)
        if props is None:
            return None

        return Note(
            id=props["id"],
            title=props.get("title") or "",
            content=props.get("content") or "",
            campaign_id=props.get("campaign_id"),
            tags=list(props.get("tags") or []),
            status=props.get("status") or "active",
            candidates=[candidate_from_properties(c) for c in props["candidates"]],
        )

    async def update_note(self, note_id: str, fields: dict) -> None:
        """Update scalar note fields; candidate lists go through `replace_suggestions`."""
        unknown = set(fields) - self._NOTE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported note fields: {sorted(unknown)}")
        self.graph_ops.update_note(note_id, dict(fields))

    async def replace_suggestions(
        self, note_id: str, entities: list[CandidateEntity]
    ) -> None:
        self.graph_ops.replace_unconverted_candidates(
            note_id,
            [candidate_to_properties(e) for e in entities if not e.is_converted],
        )

    async def mark_entity_converted(
        self, note_id: str, entity_id: str, converted_to_id: str
    ) -> Optional[CandidateEntity]:
        props = self.graph_ops.mark_candidate_converted(
            note_id, entity_id, converted_to_id
        )
        return candidate_from_properties(props) if props else None


async def load_all_elements(repository: ElementRepository) -> list[CampaignElement]:
    """Read every element kind from the repository.

    Raises:
        RepositoryUnavailable: If any collection cannot be read.
    """
    collections = await asyncio.gather(
        *[repository.get_collection(kind) for kind in ElementKind],
        return_exceptions=True,
    )

    elements: list[CampaignElement] = []
    for kind, collection in zip(ElementKind, collections):
        if isinstance(collection, Exception):
            raise RepositoryUnavailable(
                f"Could not load {kind.value} elements: {collection}"
            ) from collection
        elements.extend(collection)
    return elements
