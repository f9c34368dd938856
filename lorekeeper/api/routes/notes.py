"""Note reference and entity extraction endpoints."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from lorekeeper.api.dependencies import get_pipeline
from lorekeeper.errors import (
    ContentLengthError,
    EntityNotFound,
    InferenceFailure,
    NoteNotFound,
    QuotaExceeded,
    QuotaUnavailable,
)
from lorekeeper.notes import CandidateEntity, ExtractionOutcome, NoteEntityPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


class ConvertRequest(BaseModel):
    """Request body for marking a candidate as converted."""

    created_id: str  # ID of the campaign element created from the candidate


def quota_exceeded_detail(e: QuotaExceeded) -> dict:
    """Body returned with a 429 so clients can offer a limit increase."""
    return {
        "error": e.user_message,
        "code": e.code,
        "usage": e.status.model_dump(mode="json"),
        "contactInfo": e.contact.model_dump(mode="json"),
    }


@router.get("/notes/{note_id}/references")
async def get_references(
    note_id: str,
    pipeline: NoteEntityPipeline = Depends(get_pipeline),
) -> dict:
    """Existing campaign elements mentioned in a note."""
    try:
        references = await pipeline.find_references(note_id)
        return {"references": references, "total": len(references)}
    except NoteNotFound as e:
        raise HTTPException(status_code=404, detail=e.user_message)


@router.get("/notes/{note_id}/suggestions")
async def get_suggestions(
    note_id: str,
    pipeline: NoteEntityPipeline = Depends(get_pipeline),
) -> dict:
    """Stored candidates for a note, minus ones that are now referenced."""
    try:
        entities = await pipeline.get_stored_suggestions(note_id)
        return {"entities": entities, "total": len(entities)}
    except NoteNotFound as e:
        raise HTTPException(status_code=404, detail=e.user_message)


@router.post("/notes/{note_id}/extract", response_model=ExtractionOutcome)
async def extract_entities(
    note_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
    pipeline: NoteEntityPipeline = Depends(get_pipeline),
) -> ExtractionOutcome:
    """Extract new candidate elements from a note.

    Consumes one unit of the caller's extraction quota.
    """
    try:
        return await pipeline.extract_new_entities(note_id, user_id)
    except NoteNotFound as e:
        raise HTTPException(status_code=404, detail=e.user_message)
    except ContentLengthError as e:
        raise HTTPException(status_code=422, detail=e.user_message)
    except QuotaExceeded as e:
        raise HTTPException(status_code=429, detail=quota_exceeded_detail(e))
    except QuotaUnavailable as e:
        raise HTTPException(status_code=503, detail=e.user_message)
    except InferenceFailure:
        raise HTTPException(status_code=502, detail=InferenceFailure.user_message)
    except Exception as e:
        logger.error(f"Unexpected extraction error for note {note_id}: {e}")
        raise HTTPException(status_code=500, detail=InferenceFailure.user_message)


@router.post("/notes/{note_id}/entities/{entity_id}/convert")
async def convert_entity(
    note_id: str,
    entity_id: str,
    request: ConvertRequest,
    pipeline: NoteEntityPipeline = Depends(get_pipeline),
) -> CandidateEntity:
    """Mark a candidate as converted into a campaign element."""
    try:
        return await pipeline.mark_entity_converted(note_id, entity_id, request.created_id)
    except EntityNotFound as e:
        raise HTTPException(status_code=404, detail=e.user_message)
