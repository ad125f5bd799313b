"""
Knowledge Base Pipeline
=======================

Orchestration layer for:
1. Document ingestion (strategy-selected chunking with annotations)
2. Knowledge graph construction
3. Node embedding
4. Hybrid query answering with a reasoning trace

Uses dependency injection for the embedding provider so the pipeline can
run against Ollama, a local model, or a test double.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chunking.document_chunker import (
    ChunkingStrategy,
    DocumentSummary,
    SemanticChunkOptions,
    get_document_summary,
)
from chunking.strategies import auto_chunk, semantic_chunk
from core.logging_config import Logger, log_performance
from core.security_config import EngineConfig
from core.service_interfaces import EmbeddingInterface
from core.validation_and_errors import (
    DataValidator,
    EmbeddingException,
    ValidationException,
)
from knowledge_graph.graph_builder import KnowledgeEntry, KnowledgeGraph, create_knowledge_graph
from semantic_search.hybrid_search import HybridSearchOptions, HybridSearchResult, hybrid_search
from semantic_search.query_expansion import QueryExpander
from semantic_search.ranking import EnhancedHybridSearchOptions, enhanced_hybrid_search
from semantic_search.reasoning_chain import ReasoningChain, build_reasoning_chain, format_reasoning_chain


logger = Logger(__name__)


@dataclass
class ProcessedDocument:
    """Result of document ingestion"""
    entry_id: int
    title: str
    chunk_count: int
    strategy: Optional[ChunkingStrategy]
    summary: DocumentSummary
    processed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class QueryResponse:
    """Structured query response"""
    query: str
    results: List[HybridSearchResult]
    reasoning: ReasoningChain
    explanation: str
    searched_query: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "searched_query": self.searched_query,
            "results": [r.to_dict() for r in self.results],
            "confidence": self.reasoning.confidence,
            "explanation": self.explanation,
        }


class KnowledgeBasePipeline:
    """
    In-memory knowledge base: ingest documents, then query them.

    The graph is rebuilt lazily on the first query after any ingestion,
    since relations are only ever computed over the whole entry set.
    """

    def __init__(
        self,
        embedding_service: Optional[EmbeddingInterface] = None,
        config: Optional[EngineConfig] = None,
        expander: Optional[QueryExpander] = None,
    ):
        """
        Initialize pipeline with injected services.

        Args:
            embedding_service: Provider used for chunking, node and query
                embeddings; None runs the pipeline symbolically
            config: Chunking and search defaults
            expander: Query expander used when ``query(expand=True)``
        """
        self.embedding_service = embedding_service
        self.config = config or EngineConfig()
        self.expander = expander or QueryExpander()

        self.entries: Dict[int, KnowledgeEntry] = {}
        self.graph: Optional[KnowledgeGraph] = None
        self.node_embeddings: Dict[str, List[float]] = {}
        self._stale = True

        logger.info(
            "✓ Knowledge base pipeline initialized",
            component="pipeline",
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _chunk_options(self, strategy: Optional[ChunkingStrategy]) -> SemanticChunkOptions:
        base = self.config.chunk_options()
        return SemanticChunkOptions(
            chunk_size=base.chunk_size,
            chunk_overlap=base.chunk_overlap,
            min_chunk_size=base.min_chunk_size,
            strategy=strategy,
            get_embedding=self.embedding_service,
        )

    @log_performance
    async def ingest_document(
        self,
        text: str,
        title: str = "",
        source: Optional[str] = None,
        created_at: Optional[datetime] = None,
        entry_id: Optional[int] = None,
        strategy: Optional[ChunkingStrategy] = None,
    ) -> ProcessedDocument:
        """
        Chunk a document and add it to the knowledge base.

        Args:
            text: Document content
            title: Display title
            source: Where the document came from
            created_at: Creation time used for temporal decay
            entry_id: Optional explicit id; must be unused
            strategy: Force a chunking strategy instead of auto-selection

        Returns:
            ProcessedDocument with chunk count and summary

        Raises:
            ValidationException: empty text or a duplicate entry id
        """
        content = DataValidator.sanitize_text(text)
        if not content.strip():
            raise ValidationException("Cannot ingest an empty document")

        entry_id = entry_id if entry_id is not None else max(self.entries, default=0) + 1
        if entry_id in self.entries:
            raise ValidationException(f"Entry {entry_id} already exists")

        # ----------- PHASE 1: Chunking -----------
        options = self._chunk_options(strategy)
        if strategy is None:
            chunks = await auto_chunk(content, options)
        else:
            chunks = await semantic_chunk(content, options)

        # ----------- PHASE 2: Registration -----------
        self.entries[entry_id] = KnowledgeEntry(
            id=entry_id,
            title=title,
            content=content,
            chunks=chunks,
            source=source,
            created_at=created_at,
        )
        self._stale = True

        used = chunks[0].chunk_strategy if chunks else None
        logger.info(
            f"Ingested entry {entry_id} ({len(chunks)} chunks)",
            strategy=used.value if used else None,
        )
        return ProcessedDocument(
            entry_id=entry_id,
            title=title,
            chunk_count=len(chunks),
            strategy=used,
            summary=get_document_summary(content),
        )

    def add_entry(self, entry: KnowledgeEntry):
        """Register an already-chunked (or unchunked) entry"""
        if entry.id in self.entries:
            raise ValidationException(f"Entry {entry.id} already exists")
        self.entries[entry.id] = entry
        self._stale = True

    def remove_entry(self, entry_id: int) -> bool:
        removed = self.entries.pop(entry_id, None) is not None
        self._stale = self._stale or removed
        return removed

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    async def _embed_nodes(self, graph: KnowledgeGraph) -> Dict[str, List[float]]:
        embeddings: Dict[str, List[float]] = {}
        if self.embedding_service is None:
            return embeddings
        for node_id, node in graph.nodes.items():
            try:
                embeddings[node_id] = await self.embedding_service.embed_text(node.content)
            except EmbeddingException as e:
                logger.warning(f"No embedding for node {node_id}: {e}")
        DataValidator.validate_embedding_dimensions(embeddings)
        return embeddings

    @log_performance
    async def rebuild_graph(self) -> KnowledgeGraph:
        """Rebuild the graph and node embeddings from every entry"""
        graph = create_knowledge_graph(list(self.entries.values()))
        self.node_embeddings = await self._embed_nodes(graph)
        self.graph = graph
        self._stale = False
        return graph

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def _search_options(self, enhanced: bool) -> HybridSearchOptions:
        base = self.config.search_options()
        if not enhanced:
            return base
        return EnhancedHybridSearchOptions(**vars(base))

    @log_performance
    async def query(
        self,
        text: str,
        options: Optional[HybridSearchOptions] = None,
        expand: bool = False,
        enhanced: bool = False,
    ) -> QueryResponse:
        """
        Answer a query against the knowledge base.

        Args:
            text: Natural language query
            options: Search options (defaults from the configuration)
            expand: Add synonyms/acronym expansions before searching
            enhanced: Fuse hybrid ranking with BM25 and diversify with MMR

        Returns:
            QueryResponse with ranked results and a reasoning chain
        """
        if self._stale or self.graph is None:
            await self.rebuild_graph()

        searched = self.expander.expand(text).expanded_query if expand else text
        opts = options or self._search_options(enhanced)

        if enhanced:
            if not isinstance(opts, EnhancedHybridSearchOptions):
                opts = EnhancedHybridSearchOptions(**vars(opts))
            results = await enhanced_hybrid_search(
                searched, self.graph, self.embedding_service, self.node_embeddings, opts
            )
        else:
            results = await hybrid_search(
                searched, self.graph, self.embedding_service, self.node_embeddings, opts
            )

        chain = build_reasoning_chain(text, self.graph, results)
        logger.info(f"Query complete: {len(results)} results", component="pipeline")
        return QueryResponse(
            query=text,
            results=results,
            reasoning=chain,
            explanation=format_reasoning_chain(chain),
            searched_query=searched,
        )

    def stats(self) -> Dict[str, Any]:
        graph_stats = self.graph.stats() if self.graph is not None else {}
        return {
            "entries": len(self.entries),
            "chunks": sum(len(e.chunks or []) for e in self.entries.values()),
            "embedded_nodes": len(self.node_embeddings),
            "stale": self._stale,
            "graph": graph_stats,
        }
