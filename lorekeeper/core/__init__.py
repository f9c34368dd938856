"""Core configuration and utilities."""

from lorekeeper.core.config import settings
from lorekeeper.core.database import get_neo4j_driver, neo4j_session

__all__ = ["settings", "get_neo4j_driver", "neo4j_session"]
