"""Graph storage for campaign elements, notes and usage."""

from lorekeeper.graph.schema import ElementKind, GRAPH_SCHEMA, HAS_CANDIDATE

__all__ = ["ElementKind", "GRAPH_SCHEMA", "HAS_CANDIDATE"]
