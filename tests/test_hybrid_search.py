"""
Tests for hybrid neural/symbolic search.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from core.validation_and_errors import EmbeddingException, ValidationException
from knowledge_graph.graph_builder import RelationType, create_knowledge_graph
from semantic_search.hybrid_search import (
    HybridSearchOptions,
    detect_money_thresholds,
    hybrid_search,
    temporal_relevance,
)
from tests.embedding_doubles import FailingEmbedding, TopicEmbedding


REFERENCE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class TestMoneyComparison:
    """Threshold queries such as "over $500" """

    @pytest.mark.asyncio
    async def test_amount_over_threshold_ranks_first(self, transaction_graph):
        results = await hybrid_search(
            "transactions over $500", transaction_graph, None, options=HybridSearchOptions(min_score=0.0)
        )

        assert [r.node_id for r in results] == ["1", "2"]
        assert results[0].score > results[1].score
        money = [m for m in results[0].explanation.entity_matches if m.type == "money"]
        assert money and money[0].value == "$750.00 (>500)"
        assert money[0].boost == pytest.approx(5.0)
        assert results[1].explanation.entity_matches == []

    @pytest.mark.asyncio
    async def test_amount_under_threshold(self, transaction_graph):
        results = await hybrid_search(
            "purchases under $200", transaction_graph, None, options=HybridSearchOptions(min_score=0.0)
        )
        assert results[0].node_id == "2"
        assert results[0].explanation.entity_matches[0].value == "$100.00 (<200)"

    def test_detect_thresholds(self):
        assert detect_money_thresholds("spent over $1,000") == (1000.0, None)
        assert detect_money_thresholds("less than 25.50") == (None, 25.5)
        assert detect_money_thresholds("coffee receipts") == (None, None)


class TestScoring:
    """Component scores, cut-offs and bounds"""

    @pytest.mark.asyncio
    async def test_scores_are_bounded_and_sorted(self, transaction_graph):
        embedder = TopicEmbedding("furniture")
        node_embeddings = {"1": [1.0, 0.0], "2": [0.0, 1.0]}
        results = await hybrid_search(
            "furniture payment over $500",
            transaction_graph,
            embedder,
            node_embeddings,
            HybridSearchOptions(min_score=0.0),
        )

        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
        assert results[0].explanation.semantic_score == pytest.approx(1.0)
        assert results[1].explanation.semantic_score == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_min_score_and_top_k(self, transaction_graph):
        default = await hybrid_search("transactions over $500", transaction_graph, None)
        assert default == []

        top_one = await hybrid_search(
            "transactions over $500", transaction_graph, None, options=HybridSearchOptions(min_score=0.0, top_k=1)
        )
        assert [r.node_id for r in top_one] == ["1"]

    @pytest.mark.asyncio
    async def test_exact_entity_match(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Rent was paid on 2024-03-04."},
            {"id": 2, "content": "Rent was paid on 2024-04-04."},
        ])
        results = await hybrid_search("paid on 2024-03-04", graph, None, options=HybridSearchOptions(min_score=0.0))

        assert results[0].node_id == "1"
        assert [(m.type, m.value) for m in results[0].explanation.entity_matches] == [("date", "2024-03-04")]

    @pytest.mark.asyncio
    async def test_keyword_matches(self, transaction_graph):
        results = await hybrid_search(
            "northwind furniture", transaction_graph, None, options=HybridSearchOptions(min_score=0.0)
        )
        assert results[0].node_id == "1"
        assert results[0].explanation.keyword_matches == ["northwind", "furniture"]
        assert results[0].score == pytest.approx(0.15)

    @pytest.mark.asyncio
    async def test_graph_neighbours_vote(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Paid $750.00 to Northwind."},
            {"id": 2, "content": "Refund of $750.00 issued."},
        ])
        results = await hybrid_search("$750.00", graph, None, options=HybridSearchOptions(min_score=0.0))

        for result in results:
            connections = result.explanation.graph_connections
            assert [c.relation_type for c in connections] == [RelationType.SAME_ENTITY]
            assert connections[0].weight == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_invalid_options(self, transaction_graph):
        with pytest.raises(ValidationException):
            await hybrid_search("anything", transaction_graph, None, options=HybridSearchOptions(semantic_weight=-1))
        with pytest.raises(ValidationException):
            await hybrid_search("anything", transaction_graph, None, options=HybridSearchOptions(top_k=0))

    @pytest.mark.asyncio
    async def test_result_serialization(self):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Paid $750.00 to Northwind."},
            {"id": 2, "content": "Refund of $750.00 issued."},
        ])
        results = await hybrid_search("$750.00", graph, None, options=HybridSearchOptions(min_score=0.0))
        data = results[0].to_dict()
        assert data["explanation"]["graph_connections"][0]["relation_type"] == "same_entity"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query", ["invoice $750.00", "invoices over $500", "invoice paid 750 dollars"]
    )
    async def test_matching_amount_never_ranks_lower(self, query):
        graph = create_knowledge_graph([
            {"id": 1, "content": "Invoice paid $750.00 to the supplier."},
            {"id": 2, "content": "Invoice paid to the supplier."},
        ])
        results = await hybrid_search(query, graph, None, options=HybridSearchOptions(min_score=0.0))
        scores = {r.node_id: r.score for r in results}

        assert results[0].node_id == "1"
        assert scores["1"] >= scores.get("2", 0.0)
        assert results[0].explanation.entity_matches


class TestQueryEmbeddingFailure:
    """Embedding errors raise unless symbolic fallback is on"""

    @pytest.mark.asyncio
    async def test_failure_raises(self, transaction_graph):
        with pytest.raises(EmbeddingException):
            await hybrid_search("transactions over $500", transaction_graph, FailingEmbedding())

    @pytest.mark.asyncio
    async def test_foreign_errors_are_wrapped(self, transaction_graph):
        with pytest.raises(EmbeddingException):
            await hybrid_search("payments", transaction_graph, FailingEmbedding(RuntimeError("boom")))

    @pytest.mark.asyncio
    async def test_symbolic_fallback(self, transaction_graph):
        options = HybridSearchOptions(min_score=0.0, symbolic_fallback=True)
        results = await hybrid_search("transactions over $500", transaction_graph, FailingEmbedding(), options=options)

        assert results[0].node_id == "1"
        assert all(r.explanation.semantic_score == 0.0 for r in results)


class TestTemporalDecay:

    @pytest.fixture
    def dated_graph(self):
        return create_knowledge_graph([
            {"id": 1, "content": "Invoice settled.", "created_at": REFERENCE_TIME - timedelta(days=365)},
        ])

    @pytest.mark.asyncio
    async def test_old_entries_are_discounted(self, dated_graph):
        fresh = HybridSearchOptions(min_score=0.0, temporal_decay=False)
        decayed = HybridSearchOptions(min_score=0.0, reference_time=REFERENCE_TIME)

        undecayed_score = (await hybrid_search("invoice", dated_graph, None, options=fresh))[0].score
        result = (await hybrid_search("invoice", dated_graph, None, options=decayed))[0]

        assert result.explanation.temporal_relevance == pytest.approx(math.exp(-1))
        assert result.score == pytest.approx(undecayed_score * (0.5 + 0.5 * math.exp(-1)))

    def test_relevance(self):
        assert temporal_relevance(None, REFERENCE_TIME) is None
        assert temporal_relevance(REFERENCE_TIME + timedelta(days=10), REFERENCE_TIME) == 1.0
        assert temporal_relevance(datetime(2025, 1, 1), REFERENCE_TIME) == 1.0
