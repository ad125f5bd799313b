"""
Knowledge Graph Builder
=======================

Turns knowledge-base entries (optionally pre-chunked) into an in-memory
graph of nodes and typed, weighted relations.

Relations are stored once, in ``KnowledgeGraph.relations``; each node keeps
the integer ids of the relations touching it. Relation discovery compares
every pair of nodes, so construction is O(n^2) in the node count. That is
fine for personal or document-scale knowledge bases; larger corpora would
need candidate pruning through ``entity_index``/``keyword_index`` with the
same edge-weight formulas.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set

from pydantic import BaseModel, Field

from chunking.document_chunker import EnhancedKnowledgeChunk
from core.logging_config import Logger, log_performance
from core.validation_and_errors import DataValidator, GraphBuildException
from entity_extraction.entity_extractor import ExtractedEntity, entity_match_value, extract_entities


logger = Logger(__name__)

SHARED_ENTITY_WEIGHT = 0.3
TOPIC_SIMILARITY_THRESHOLD = 0.2

_CHUNK_INDEX = re.compile(r"(\d+)$")


class RelationType(str, Enum):
    REFERENCES = "references"
    SIMILAR_TO = "similar_to"
    PART_OF = "part_of"
    FOLLOWS = "follows"
    PRECEDES = "precedes"
    CONTRADICTS = "contradicts"
    SUPPORTS = "supports"
    SAME_TOPIC = "same_topic"
    SAME_ENTITY = "same_entity"


@dataclass(frozen=True)
class KnowledgeRelation:
    source_id: str
    target_id: str
    type: RelationType
    weight: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def other(self, node_id: str) -> str:
        """The endpoint that is not *node_id*."""
        return self.target_id if self.source_id == node_id else self.source_id


class KnowledgeEntry(BaseModel):
    """A knowledge-base document as supplied by the document source"""
    id: int
    title: str = ""
    content: str
    chunks: Optional[List[EnhancedKnowledgeChunk]] = None
    source: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class KnowledgeNode:
    id: str
    entry_id: int
    content: str
    title: str
    entities: List[ExtractedEntity]
    keywords: List[str]
    chunk_id: Optional[str] = None
    embedding: Optional[List[float]] = None
    relation_ids: List[int] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_position(self) -> Optional[int]:
        if self.chunk_id is None:
            return None
        match = _CHUNK_INDEX.search(self.chunk_id)
        return int(match.group(1)) if match else None


@dataclass
class KnowledgeGraph:
    nodes: Dict[str, KnowledgeNode] = field(default_factory=dict)
    relations: List[KnowledgeRelation] = field(default_factory=list)
    entity_index: Dict[str, Set[str]] = field(default_factory=dict)
    keyword_index: Dict[str, Set[str]] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def relations_of(self, node_id: str) -> List[KnowledgeRelation]:
        """Relations with *node_id* as either endpoint."""
        return [self.relations[i] for i in self.nodes[node_id].relation_ids]

    def neighbors(self, node_id: str) -> Iterator[KnowledgeNode]:
        for relation in self.relations_of(node_id):
            neighbor = self.nodes.get(relation.other(node_id))
            if neighbor is not None:
                yield neighbor

    def add_relation(self, relation: KnowledgeRelation) -> int:
        if relation.source_id not in self.nodes or relation.target_id not in self.nodes:
            raise GraphBuildException(
                f"Relation {relation.source_id} -> {relation.target_id} references an unknown node"
            )
        relation_id = len(self.relations)
        self.relations.append(relation)
        self.nodes[relation.source_id].relation_ids.append(relation_id)
        self.nodes[relation.target_id].relation_ids.append(relation_id)
        return relation_id

    def stats(self) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        for relation in self.relations:
            by_type[relation.type.value] = by_type.get(relation.type.value, 0) + 1
        return {
            "nodes": len(self.nodes),
            "relations": len(self.relations),
            "relations_by_type": by_type,
            "indexed_entities": len(self.entity_index),
            "indexed_keywords": len(self.keyword_index),
            "last_updated": self.last_updated.isoformat(),
        }


# ---------------------------------------------------------------------------
# Similarity helpers
# ---------------------------------------------------------------------------

def entity_key(entity: ExtractedEntity) -> str:
    """Index key ``<type>:<lowercased normalized-or-raw value>``."""
    return f"{entity.type.value}:{entity_match_value(entity)}"


def jaccard_similarity(first: Iterable[str], second: Iterable[str]) -> float:
    a, b = set(first), set(second)
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def find_shared_entities(first: KnowledgeNode, second: KnowledgeNode) -> List[ExtractedEntity]:
    """Entities of *first* with a same-type, same-value twin in *second* (one per pair)."""
    second_keys = [entity_key(e) for e in second.entities]
    shared = []
    for entity in first.entities:
        key = entity_key(entity)
        shared.extend(entity for other in second_keys if other == key)
    return shared


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def _make_node(entry: KnowledgeEntry, content: str, chunk_id: Optional[str]) -> KnowledgeNode:
    extraction = extract_entities(content)
    return KnowledgeNode(
        id=f"{entry.id}-{chunk_id}" if chunk_id is not None else str(entry.id),
        entry_id=entry.id,
        chunk_id=chunk_id,
        content=content,
        title=entry.title,
        entities=extraction.entities,
        keywords=extraction.keywords,
        metadata={
            "source": entry.source,
            "created_at": entry.created_at,
            "char_count": len(content),
            "entity_count": len(extraction.entities),
        },
    )


def _index_node(graph: KnowledgeGraph, node: KnowledgeNode):
    for entity in node.entities:
        graph.entity_index.setdefault(entity_key(entity), set()).add(node.id)
    for keyword in node.keywords:
        graph.keyword_index.setdefault(keyword, set()).add(node.id)


def _relate(graph: KnowledgeGraph, first: KnowledgeNode, second: KnowledgeNode):
    if first.entry_id == second.entry_id:
        # Chunks of one entry are linked only by reading order
        p1, p2 = first.chunk_position, second.chunk_position
        if p1 is not None and p2 is not None and abs(p1 - p2) == 1:
            earlier, later = (first, second) if p1 < p2 else (second, first)
            graph.add_relation(KnowledgeRelation(earlier.id, later.id, RelationType.FOLLOWS, 1.0))
        return

    shared = find_shared_entities(first, second)
    if shared:
        graph.add_relation(
            KnowledgeRelation(
                first.id,
                second.id,
                RelationType.SAME_ENTITY,
                min(1.0, len(shared) * SHARED_ENTITY_WEIGHT),
                {"shared_entities": [e.value for e in shared]},
            )
        )

    similarity = jaccard_similarity(first.keywords, second.keywords)
    if similarity > TOPIC_SIMILARITY_THRESHOLD:
        graph.add_relation(KnowledgeRelation(first.id, second.id, RelationType.SAME_TOPIC, similarity))


@log_performance
def create_knowledge_graph(entries: Sequence[Any]) -> KnowledgeGraph:
    """
    Build a graph from knowledge-base entries.

    Args:
        entries: ``KnowledgeEntry`` instances or mappings with the same
            fields (``id``, ``title``, ``content``, ``chunks``, ``source``,
            ``created_at``)

    Returns:
        A fresh graph; identical input always yields an identical graph
        apart from ``last_updated``.

    Raises:
        ValidationException: an entry does not match the entry schema
        GraphBuildException: two entries produce the same node id
    """
    graph = KnowledgeGraph()

    # ----------- PHASE 1: nodes -----------
    for entry in DataValidator.validate_entries(list(entries), KnowledgeEntry):
        if entry.chunks:
            candidates = [_make_node(entry, chunk.content, chunk.id) for chunk in entry.chunks]
        else:
            candidates = [_make_node(entry, entry.content, None)]

        for node in candidates:
            if node.id in graph.nodes:
                raise GraphBuildException(f"Duplicate node id {node.id}")
            graph.nodes[node.id] = node
            _index_node(graph, node)

    # ----------- PHASE 2: pairwise relations -----------
    nodes = list(graph.nodes.values())
    for i, first in enumerate(nodes):
        for second in nodes[i + 1:]:
            _relate(graph, first, second)

    logger.info(
        f"Built knowledge graph: {len(graph.nodes)} nodes, {len(graph.relations)} relations",
        node_count=len(graph.nodes),
    )
    return graph
