"""Shared service instances for the API routes."""

from functools import lru_cache

from lorekeeper.graph.operations import CampaignGraphOps
from lorekeeper.notes import NoteEntityPipeline
from lorekeeper.notes.extractors import LLMExtractor
from lorekeeper.notes.stores import GraphElementRepository, GraphNoteStore
from lorekeeper.quota import Neo4jQuotaStore, QuotaEngine


@lru_cache
def get_quota_engine() -> QuotaEngine:
    """Get cached quota engine backed by the graph."""
    return QuotaEngine(store=Neo4jQuotaStore())


@lru_cache
def get_pipeline() -> NoteEntityPipeline:
    """Get cached note pipeline wired to graph storage and OpenAI."""
    graph_ops = CampaignGraphOps()
    return NoteEntityPipeline(
        notes=GraphNoteStore(graph_ops),
        repository=GraphElementRepository(graph_ops),
        inference=LLMExtractor(),
        quota=get_quota_engine(),
    )
