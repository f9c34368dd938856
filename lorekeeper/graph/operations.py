"""Campaign graph operations used by the note pipeline."""

import logging
from datetime import datetime, timezone
from typing import Optional

from lorekeeper.core.database import neo4j_session
from lorekeeper.graph.schema import ElementKind, GRAPH_SCHEMA, HAS_CANDIDATE

logger = logging.getLogger(__name__)


class CampaignGraphOps:
    """Operations for campaign elements and notes stored in Neo4j."""

    def __init__(self, ensure_schema: bool = True):
        """Initialize and optionally ensure schema exists."""
        if ensure_schema:
            self._ensure_schema()

    def _ensure_schema(self):
        """Create constraints and indexes if they don't exist."""
        with neo4j_session() as session:
            for statement in GRAPH_SCHEMA["constraints"] + GRAPH_SCHEMA["indexes"]:
                try:
                    session.run(statement)
                except Exception as e:
                    # Older servers reject IF NOT EXISTS on some index kinds
                    logger.debug(f"Schema statement skipped: {e}")

    def list_elements(self, kind: ElementKind, limit: int = 1000) -> list[dict]:
        """List campaign elements of one kind.

        Args:
            kind: Element kind to list.
            limit: Maximum number of results.

        Returns:
            List of element property dicts.
        """
        query = """
        MATCH (e:Entity {entity_type: $entity_type})
        RETURN e
        ORDER BY e.name
        LIMIT $limit
        """

        with neo4j_session() as session:
            result = session.run(query, entity_type=kind.graph_type, limit=limit)
            return [dict(record["e"]) for record in result]

    def get_note(self, note_id: str) -> Optional[dict]:
        """Get a note together with its stored candidates.

        Returns:
            Note properties with a `candidates` list, or None if not found.
        """
        query = f"""
        MATCH (n:Note {{id: $id}})
        OPTIONAL MATCH (n)-[:{HAS_CANDIDATE}]->(c:Candidate)
        RETURN n, collect(c) AS candidates
        """

        with neo4j_session() as session:
            record = session.run(query, id=note_id).single()
            if not record or record["n"] is None:
                return None
            note = dict(record["n"])
            note["candidates"] = [dict(c) for c in record["candidates"]]
            return note

    def update_note(self, note_id: str, updates: dict) -> Optional[dict]:
        """Update scalar note properties."""
        updates = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}

        query = """
        MATCH (n:Note {id: $id})
        SET n += $updates
        RETURN n
        """

        with neo4j_session() as session:
            record = session.run(query, id=note_id, updates=updates).single()
            return dict(record["n"]) if record else None

    def replace_unconverted_candidates(
        self,
        note_id: str,
        candidates: list[dict],
    ) -> bool:
        """Swap a note's unconverted candidates for a new set in one transaction.

        Converted candidates are never touched, so a conversion that lands
        while an extraction is persisting survives.

        Args:
            note_id: The note's ID.
            candidates: Property dicts for the new unconverted candidates.

        Returns:
            True if the note exists.
        """

        def _replace(tx) -> bool:
            found = tx.run(
                "MATCH (n:Note {id: $id}) SET n.updated_at = $now RETURN n.id AS id",
                id=note_id,
                now=datetime.now(timezone.utc).isoformat(),
            ).single()
            if not found:
                return False

            tx.run(
                f"""
                MATCH (n:Note {{id: $id}})-[:{HAS_CANDIDATE}]->(c:Candidate)
                WHERE coalesce(c.is_converted, false) = false
                DETACH DELETE c
                """,
                id=note_id,
            )
            tx.run(
                f"""
                MATCH (n:Note {{id: $id}})
                UNWIND $candidates AS props
                CREATE (n)-[:{HAS_CANDIDATE}]->(c:Candidate)
                SET c = props
                """,
                id=note_id,
                candidates=candidates,
            )
            return True

        with neo4j_session() as session:
            return session.execute_write(_replace)

    def mark_candidate_converted(
        self,
        note_id: str,
        candidate_id: str,
        converted_to_id: str,
    ) -> Optional[dict]:
        """Flag one stored candidate as converted.

        Only the conversion fields of the matched candidate are written.
        A candidate that is already converted keeps its original target.

        Returns:
            Updated candidate properties or None if not found.
        """
        query = f"""
        MATCH (n:Note {{id: $note_id}})-[:{HAS_CANDIDATE}]->(c:Candidate {{id: $candidate_id}})
        SET c.converted_to_id = CASE
                WHEN coalesce(c.is_converted, false) THEN c.converted_to_id
                ELSE $converted_to_id
            END,
            c.is_converted = true
        RETURN c
        """

        with neo4j_session() as session:
            record = session.run(
                query,
                note_id=note_id,
                candidate_id=candidate_id,
                converted_to_id=converted_to_id,
            ).single()
            return dict(record["c"]) if record else None
