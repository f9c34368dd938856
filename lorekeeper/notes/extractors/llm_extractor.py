"""LLM-based candidate extraction from session notes."""

import asyncio
import json
import logging
import uuid
from typing import Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from lorekeeper.core.config import settings
from lorekeeper.errors import InferenceFailure
from lorekeeper.graph.schema import ElementKind
from lorekeeper.notes.config import NotesConfig, default_config
from lorekeeper.notes.models import CandidateEntity

logger = logging.getLogger(__name__)


EXTRACTION_FUNCTION = "extract_entities"

EXTRACTION_SYSTEM_PROMPT = """You are a Dungeons & Dragons session-note parser.
Your only job is to call the function "extract_entities" with valid arguments.

The function schema strictly defines the allowed 'type' field as one of:
  - "npc"
  - "location"
  - "quest"
  - "rumor"

Never use any other value (e.g. "character", "person").
Every named person or character is ALWAYS type "npc".

Do not output any text yourself; only invoke the function with correct JSON."""

_NULLABLE_STRING = {"type": ["string", "null"]}
_CONFIDENCE = {"type": "number", "minimum": 0, "maximum": 1}

EXTRACTION_TOOL = {
    "type": "function",
    "function": {
        "name": EXTRACTION_FUNCTION,
        "description": "Extract D&D entities from a session note",
        "parameters": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "entities": {
                    "type": "array",
                    "items": {
                        "oneOf": [
                            {
                                "type": "object",
                                "additionalProperties": False,
                                "properties": {
                                    "type": {"const": "npc"},
                                    "text": {"type": "string"},
                                    "confidence": _CONFIDENCE,
                                    "name": {"type": "string"},
                                    "title": _NULLABLE_STRING,
                                    "race": _NULLABLE_STRING,
                                    "occupation": _NULLABLE_STRING,
                                    "location": _NULLABLE_STRING,
                                    "relationship": {
                                        "type": "string",
                                        "enum": ["friendly", "neutral", "hostile", "unknown"],
                                    },
                                    "description": _NULLABLE_STRING,
                                    "context": {"type": "string"},
                                },
                                "required": ["type", "text", "confidence", "name", "context"],
                            },
                            {
                                "type": "object",
                                "additionalProperties": False,
                                "properties": {
                                    "type": {"const": "location"},
                                    "text": {"type": "string"},
                                    "confidence": _CONFIDENCE,
                                    "name": {"type": "string"},
                                    "locationType": {
                                        "type": "string",
                                        "enum": [
                                            "region", "city", "town", "village",
                                            "dungeon", "landmark", "building", "poi",
                                        ],
                                    },
                                    "description": _NULLABLE_STRING,
                                    "parentLocation": _NULLABLE_STRING,
                                    "context": {"type": "string"},
                                },
                                "required": [
                                    "type", "text", "confidence", "name",
                                    "locationType", "context",
                                ],
                            },
                            {
                                "type": "object",
                                "additionalProperties": False,
                                "properties": {
                                    "type": {"const": "quest"},
                                    "text": {"type": "string"},
                                    "confidence": _CONFIDENCE,
                                    "title": {"type": "string"},
                                    "description": _NULLABLE_STRING,
                                    "objectives": {"type": "array", "items": {"type": "string"}},
                                    "relatedNPCIds": {"type": "array", "items": {"type": "string"}},
                                    "locationName": _NULLABLE_STRING,
                                },
                                "required": [
                                    "type", "text", "confidence", "title",
                                    "objectives", "relatedNPCIds",
                                ],
                            },
                            {
                                "type": "object",
                                "additionalProperties": False,
                                "properties": {
                                    "type": {"const": "rumor"},
                                    "text": {"type": "string"},
                                    "confidence": _CONFIDENCE,
                                    "title": {"type": "string"},
                                    "content": {"type": "string"},
                                    "status": {
                                        "type": "string",
                                        "enum": ["confirmed", "unconfirmed", "false", "unknown"],
                                    },
                                    "sourceType": {
                                        "type": "string",
                                        "enum": ["npc", "tavern", "notice", "traveler", "other"],
                                    },
                                    "sourceName": _NULLABLE_STRING,
                                },
                                "required": ["type", "text", "confidence", "title", "content"],
                            },
                        ]
                    },
                }
            },
            "required": ["entities"],
        },
    },
}

_CORE_FIELDS = {"type", "text", "confidence"}


class LLMExtractor:
    """Extract candidate campaign elements from note text using an LLM."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        config: Optional[NotesConfig] = None,
    ):
        """Initialize the LLM extractor.

        Args:
            client: OpenAI client. Built from settings if None.
            model: Chat model name. Uses settings if None.
            config: Pipeline configuration. Uses defaults if None.
        """
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.openai_model
        self.config = config or default_config

    async def extract(self, text: str) -> list[CandidateEntity]:
        """Extract candidate entities from a note.

        Args:
            text: Full note text.

        Returns:
            Candidates in the order the model reported them.

        Raises:
            InferenceFailure: On timeout, transport error, or malformed output.
        """
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                        {"role": "user", "content": text},
                    ],
                    tools=[EXTRACTION_TOOL],
                    tool_choice={
                        "type": "function",
                        "function": {"name": EXTRACTION_FUNCTION},
                    },
                    temperature=self.config.inference_temperature,
                ),
                timeout=self.config.inference_timeout,
            )
        except asyncio.TimeoutError as e:
            raise InferenceFailure(
                f"Entity extraction timed out after {self.config.inference_timeout}s"
            ) from e
        except Exception as e:
            raise InferenceFailure(f"Entity extraction request failed: {e}") from e

        arguments = self._tool_arguments(response)
        raw_entities = arguments.get("entities")
        if not isinstance(raw_entities, list):
            raise InferenceFailure("Extraction result has no entity list")

        return self._parse_entities(raw_entities)

    def _tool_arguments(self, response) -> dict:
        """Pull the parsed `extract_entities` arguments out of a completion."""
        if not response.choices:
            raise InferenceFailure("No choice returned from the model")

        message = response.choices[0].message
        for call in message.tool_calls or []:
            if call.function.name != EXTRACTION_FUNCTION:
                continue
            if not call.function.arguments:
                raise InferenceFailure("Function call had no arguments")
            try:
                arguments = json.loads(call.function.arguments)
            except json.JSONDecodeError as e:
                raise InferenceFailure("Failed to parse function arguments") from e
            if not isinstance(arguments, dict):
                raise InferenceFailure("Function arguments are not an object")
            return arguments

        raise InferenceFailure(f"Expected a call to {EXTRACTION_FUNCTION}")

    def _parse_entities(self, raw_entities: list) -> list[CandidateEntity]:
        """Parse raw entity dicts into candidates.

        Args:
            raw_entities: Entity dicts from the model.

        Returns:
            Valid candidates; malformed entries are skipped.
        """
        entities = []

        for raw in raw_entities:
            if not isinstance(raw, dict):
                continue

            try:
                kind = ElementKind(str(raw.get("type", "")).lower())
            except ValueError:
                logger.warning(f"Skipping entity with unknown type: {raw.get('type')!r}")
                continue

            text = raw.get("text") or raw.get("name") or raw.get("title")
            if not text:
                continue

            extra = {k: v for k, v in raw.items() if k not in _CORE_FIELDS}
            extra["original_text"] = text
            confidence = raw.get("confidence")

            try:
                entity = CandidateEntity(
                    id=f"{kind.value}-{uuid.uuid4().hex[:12]}",
                    text=text,
                    kind=kind,
                    confidence=0.5 if confidence is None else confidence,
                    extra=extra,
                )
            except ValidationError as e:
                logger.warning(f"Skipping malformed {kind.value} entity: {e}")
                continue

            if entity.confidence < self.config.confidence_floor:
                continue
            entities.append(entity)

        return entities
