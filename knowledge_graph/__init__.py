"""In-memory knowledge graph over chunked documents"""

from .graph_builder import (
    KnowledgeEntry,
    KnowledgeGraph,
    KnowledgeNode,
    KnowledgeRelation,
    RelationType,
    create_knowledge_graph,
    entity_key,
    find_shared_entities,
    jaccard_similarity,
)

__all__ = [
    "KnowledgeEntry",
    "KnowledgeGraph",
    "KnowledgeNode",
    "KnowledgeRelation",
    "RelationType",
    "create_knowledge_graph",
    "entity_key",
    "find_shared_entities",
    "jaccard_similarity",
]
