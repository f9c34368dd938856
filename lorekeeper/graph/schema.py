"""Graph schema definitions for campaign elements, notes and usage records."""

from enum import Enum


class ElementKind(str, Enum):
    """Kinds of campaign elements a note can mention."""

    NPC = "npc"
    LOCATION = "location"
    QUEST = "quest"
    RUMOR = "rumor"

    @property
    def graph_type(self) -> str:
        """The `entity_type` value campaign elements carry in the graph."""
        return self.value.upper()


HAS_CANDIDATE = "HAS_CANDIDATE"


GRAPH_SCHEMA = {
    "constraints": [
        "CREATE CONSTRAINT entity_id IF NOT EXISTS FOR (e:Entity) REQUIRE e.id IS UNIQUE",
        "CREATE CONSTRAINT note_id IF NOT EXISTS FOR (n:Note) REQUIRE n.id IS UNIQUE",
        "CREATE CONSTRAINT candidate_id IF NOT EXISTS FOR (c:Candidate) REQUIRE c.id IS UNIQUE",
        # MERGE on a usage record must never create two nodes for one user
        "CREATE CONSTRAINT quota_user IF NOT EXISTS FOR (u:QuotaUsage) REQUIRE u.user_id IS UNIQUE",
    ],
    "indexes": [
        "CREATE INDEX entity_name IF NOT EXISTS FOR (e:Entity) ON (e.name)",
        "CREATE INDEX entity_type IF NOT EXISTS FOR (e:Entity) ON (e.entity_type)",
    ],
}
