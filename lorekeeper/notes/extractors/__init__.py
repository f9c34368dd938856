"""Inference-backed candidate extraction."""

from lorekeeper.notes.extractors.llm_extractor import LLMExtractor

__all__ = ["LLMExtractor"]
