"""Database connection management for Neo4j."""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from neo4j import GraphDatabase, Driver

from lorekeeper.core.config import settings


@lru_cache
def get_neo4j_driver() -> Driver:
    """Get cached Neo4j driver instance."""
    return GraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
    )


@contextmanager
def neo4j_session() -> Generator:
    """Context manager for Neo4j sessions."""
    driver = get_neo4j_driver()
    session = driver.session()
    try:
        yield session
    finally:
        session.close()
