"""
Tests for knowledge graph construction.
"""

from datetime import datetime

import pytest

from chunking.document_chunker import EnhancedKnowledgeChunk
from core.validation_and_errors import GraphBuildException, ValidationException
from knowledge_graph.graph_builder import (
    KnowledgeEntry,
    KnowledgeRelation,
    RelationType,
    create_knowledge_graph,
    jaccard_similarity,
)


def _chunked_entry(entry_id, contents):
    chunks = [
        EnhancedKnowledgeChunk(id=f"chunk-{i}", content=content, index=i)
        for i, content in enumerate(contents)
    ]
    return KnowledgeEntry(id=entry_id, title=f"Entry {entry_id}", content=" ".join(contents), chunks=chunks)


class TestCrossEntryRelations:
    """same_entity and same_topic relations between entries"""

    def test_unrelated_entries_have_no_relations(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Gardening tips for spring tomatoes."},
            {"id": 2, "content": "Quantum physics lecture notes."},
        ])
        assert set(graph.nodes) == {"1", "2"}
        assert graph.relations == []

    def test_shared_keyword_gives_one_topic_relation(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Invoice received."},
            {"id": 2, "content": "Invoice approved."},
        ])

        assert len(graph.relations) == 1
        relation = graph.relations[0]
        assert relation.type is RelationType.SAME_TOPIC
        assert {relation.source_id, relation.target_id} == {"1", "2"}
        assert relation.weight == pytest.approx(1 / 3)

    def test_shared_entity_relation(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Paid $750.00 to Northwind."},
            {"id": 2, "content": "Refund of $750.00 issued."},
        ])

        assert len(graph.relations) == 1
        relation = graph.relations[0]
        assert relation.type is RelationType.SAME_ENTITY
        assert relation.weight == pytest.approx(0.3)
        assert relation.metadata["shared_entities"] == ["$750.00"]
        assert graph.entity_index["money:750"] == {"1", "2"}

    def test_entity_weight_is_capped(self):
        shared = "On 2024-01-02 we paid $10.00, $20.00, $30.00 and $40.00."
        graph = create_knowledge_graph([
            {"id": 1, "content": shared},
            {"id": 2, "content": shared},
        ])
        same_entity = [r for r in graph.relations if r.type is RelationType.SAME_ENTITY]
        assert len(same_entity) == 1
        assert same_entity[0].weight == 1.0


class TestChunkedEntries:
    """Chunks of one entry are linked in reading order only"""

    def test_follows_relations(self):
        entry = _chunked_entry(7, [
            "Invoice for $500.00 sent.",
            "Invoice for $500.00 paid.",
            "Invoice for $500.00 archived.",
        ])
        graph = create_knowledge_graph([entry])

        assert set(graph.nodes) == {"7-chunk-0", "7-chunk-1", "7-chunk-2"}
        assert all(r.type is RelationType.FOLLOWS for r in graph.relations)
        pairs = {(r.source_id, r.target_id) for r in graph.relations}
        assert pairs == {("7-chunk-0", "7-chunk-1"), ("7-chunk-1", "7-chunk-2")}
        assert all(r.weight == 1.0 for r in graph.relations)

    def test_chunk_position(self):
        graph = create_knowledge_graph([_chunked_entry(3, ["First part.", "Second part."])])
        assert graph.nodes["3-chunk-1"].chunk_position == 1
        assert graph.nodes["3-chunk-1"].chunk_id == "chunk-1"


class TestGraphStructure:
    """Relation bookkeeping and validation"""

    def test_relations_visible_from_both_endpoints(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Paid $750.00 to Northwind."},
            {"id": 2, "content": "Refund of $750.00 issued."},
        ])

        assert graph.nodes["1"].relation_ids == graph.nodes["2"].relation_ids == [0]
        assert graph.relations_of("1") == graph.relations_of("2")
        assert [n.id for n in graph.neighbors("1")] == ["2"]
        assert [n.id for n in graph.neighbors("2")] == ["1"]

    def test_node_metadata(self):
        created = datetime(2024, 5, 1)
        graph = create_knowledge_graph([
            KnowledgeEntry(id=4, title="Note", content="Paid $5.00.", source="inbox", created_at=created)
        ])
        node = graph.nodes["4"]
        assert node.title == "Note"
        assert node.metadata["source"] == "inbox"
        assert node.metadata["created_at"] == created
        assert node.metadata["char_count"] == len("Paid $5.00.")
        assert node.metadata["entity_count"] == 1

    def test_duplicate_node_id(self):
        with pytest.raises(GraphBuildException):
            create_knowledge_graph([
                {"id": 1, "content": "First."},
                {"id": 1, "content": "Second."},
            ])

    def test_invalid_entry(self):
        with pytest.raises(ValidationException):
            create_knowledge_graph([{"title": "No id or content"}])

    def test_relation_to_unknown_node(self, transaction_graph):
        with pytest.raises(GraphBuildException):
            transaction_graph.add_relation(KnowledgeRelation("1", "missing", RelationType.SUPPORTS, 0.5))

    def test_stats(self, transaction_graph):
        stats = transaction_graph.stats()
        assert stats["nodes"] == 2
        assert stats["relations"] == len(transaction_graph.relations)
        assert stats["indexed_entities"] == len(transaction_graph.entity_index)

    def test_empty_input(self):
        graph = create_knowledge_graph([])
        assert graph.nodes == {}
        assert graph.relations == []

    def test_construction_is_idempotent(self):
        def entries():
            return [
                _chunked_entry(1, ["Paid $750.00 to Northwind.", "Invoice archived on 2024-01-02."]),
                {"id": 2, "content": "Refund of $750.00 issued for the invoice."},
                {"id": 3, "content": "Invoice approved by finance."},
            ]

        first = create_knowledge_graph(entries())
        second = create_knowledge_graph(entries())

        assert first.relations
        assert first.relations == second.relations
        assert first.entity_index == second.entity_index
        assert first.keyword_index == second.keyword_index
        assert list(first.nodes) == list(second.nodes)
        for node_id, node in first.nodes.items():
            assert node.relation_ids == second.nodes[node_id].relation_ids
            assert node.keywords == second.nodes[node_id].keywords


class TestJaccard:

    def test_overlap(self):
        assert jaccard_similarity(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)

    def test_empty_sets(self):
        assert jaccard_similarity([], []) == 0.0
