"""
End-to-end tests for the knowledge base pipeline.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from chunking.document_chunker import ChunkingStrategy
from core.security_config import EngineConfig
from core.validation_and_errors import ValidationException
from knowledge_graph.graph_builder import KnowledgeEntry
from pipelines.knowledge_pipeline import KnowledgeBasePipeline
from sample_data.sample_documents import SAMPLE_INVOICE, SAMPLE_MEETING_NOTES, SAMPLE_STATEMENT
from semantic_search.hybrid_search import HybridSearchOptions
from tests.embedding_doubles import FailingEmbedding, KeywordEmbedding


class TestIngestion:

    @pytest.fixture
    def pipeline(self):
        return KnowledgeBasePipeline(config=EngineConfig(symbolic_fallback=True))

    @pytest.mark.asyncio
    async def test_ingest_assigns_ids(self, pipeline):
        statement = await pipeline.ingest_document(SAMPLE_STATEMENT, title="statement", source="bank")
        invoice = await pipeline.ingest_document(SAMPLE_INVOICE, title="invoice")

        assert (statement.entry_id, invoice.entry_id) == (1, 2)
        assert statement.chunk_count == 1
        assert statement.strategy is ChunkingStrategy.SENTENCE
        assert statement.summary.entity_count > 0
        assert pipeline.entries[1].source == "bank"

    @pytest.mark.asyncio
    async def test_forced_strategy(self, pipeline):
        processed = await pipeline.ingest_document(
            SAMPLE_MEETING_NOTES, title="meeting", strategy=ChunkingStrategy.HIERARCHICAL
        )
        assert processed.chunk_count == 4
        assert processed.strategy is ChunkingStrategy.HIERARCHICAL

    @pytest.mark.asyncio
    async def test_rejects_empty_and_duplicate_documents(self, pipeline):
        with pytest.raises(ValidationException):
            await pipeline.ingest_document("  \n ")

        await pipeline.ingest_document(SAMPLE_INVOICE, entry_id=10)
        with pytest.raises(ValidationException):
            await pipeline.ingest_document(SAMPLE_STATEMENT, entry_id=10)
        with pytest.raises(ValidationException):
            pipeline.add_entry(KnowledgeEntry(id=10, content="Duplicate."))

    @pytest.mark.asyncio
    async def test_add_and_remove_entries(self, pipeline):
        pipeline.add_entry(KnowledgeEntry(id=5, title="Note", content="Paid $12.00 for parking."))
        await pipeline.rebuild_graph()
        assert set(pipeline.graph.nodes) == {"5"}

        assert pipeline.remove_entry(5) is True
        assert pipeline.remove_entry(5) is False
        assert pipeline.stats()["stale"] is True


class TestQuerying:

    @pytest_asyncio.fixture
    async def symbolic_pipeline(self):
        pipeline = KnowledgeBasePipeline(config=EngineConfig(symbolic_fallback=True, min_score=0.0))
        await pipeline.ingest_document(SAMPLE_STATEMENT, title="statement")
        await pipeline.ingest_document(SAMPLE_INVOICE, title="invoice")
        return pipeline

    @pytest.mark.asyncio
    async def test_query_rebuilds_graph(self, symbolic_pipeline):
        response = await symbolic_pipeline.query("transactions over $500")

        assert symbolic_pipeline.stats()["stale"] is False
        assert {r.node_id for r in response.results} == {"1-chunk-0", "2-chunk-0"}
        assert all(
            any(m.type == "money" for m in r.explanation.entity_matches) for r in response.results
        )
        assert response.explanation.startswith("**Reasoning Chain**")
        assert response.to_dict()["query"] == "transactions over $500"

    @pytest.mark.asyncio
    async def test_expanded_query(self, symbolic_pipeline):
        response = await symbolic_pipeline.query("invoice payment", expand=True)
        assert response.searched_query == "invoice payment bill receipt charge transaction"
        assert response.reasoning.query == "invoice payment"

    @pytest.mark.asyncio
    async def test_enhanced_query(self, symbolic_pipeline):
        response = await symbolic_pipeline.query(
            "consulting invoice", options=HybridSearchOptions(min_score=0.0), enhanced=True
        )
        assert response.results[0].node_id == "2-chunk-0"

    @pytest.mark.asyncio
    async def test_temporal_metadata_flows_to_results(self):
        pipeline = KnowledgeBasePipeline(config=EngineConfig(min_score=0.0))
        created = datetime(2020, 1, 1, tzinfo=timezone.utc)
        await pipeline.ingest_document(SAMPLE_INVOICE, title="invoice", created_at=created)

        response = await pipeline.query("consulting invoice")
        relevance = response.results[0].explanation.temporal_relevance
        assert relevance is not None and relevance < 0.1


class TestEmbeddings:

    @pytest.mark.asyncio
    async def test_nodes_are_embedded(self):
        embedder = KeywordEmbedding()
        pipeline = KnowledgeBasePipeline(embedding_service=embedder, config=EngineConfig(min_score=0.0))
        await pipeline.ingest_document(SAMPLE_STATEMENT, title="statement")
        await pipeline.ingest_document(SAMPLE_INVOICE, title="invoice")

        response = await pipeline.query("consulting services invoice")

        stats = pipeline.stats()
        assert stats["embedded_nodes"] == stats["graph"]["nodes"] == 2
        assert all(node.embedding is None for node in pipeline.graph.nodes.values())
        by_id = {r.node_id: r for r in response.results}
        assert by_id["2-chunk-0"].explanation.semantic_score > 0
        assert by_id["2-chunk-0"].explanation.keyword_matches == ["consulting", "services", "invoice"]

    @pytest.mark.asyncio
    async def test_failing_embeddings_degrade_to_symbolic(self):
        pipeline = KnowledgeBasePipeline(
            embedding_service=FailingEmbedding(), config=EngineConfig(symbolic_fallback=True, min_score=0.0)
        )
        await pipeline.ingest_document(SAMPLE_INVOICE, title="invoice")

        response = await pipeline.query("consulting invoice")

        assert pipeline.node_embeddings == {}
        assert response.results[0].explanation.semantic_score == 0.0
