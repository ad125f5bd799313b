"""Document chunking pipeline"""

from .document_chunker import (
    ChunkEntity,
    ChunkOptions,
    ChunkingStrategy,
    DocumentSummary,
    EnhancedKnowledgeChunk,
    SemanticChunkOptions,
    chunk_text,
    get_document_summary,
)
from .strategies import (
    auto_chunk,
    entity_aware_chunk,
    fixed_chunk,
    hierarchical_chunk,
    select_strategy,
    semantic_chunk,
)

__all__ = [
    # Models & options
    "ChunkEntity",
    "ChunkOptions",
    "ChunkingStrategy",
    "DocumentSummary",
    "EnhancedKnowledgeChunk",
    "SemanticChunkOptions",
    # Chunkers
    "chunk_text",
    "semantic_chunk",
    "auto_chunk",
    "select_strategy",
    "fixed_chunk",
    "hierarchical_chunk",
    "entity_aware_chunk",
    # Summaries
    "get_document_summary",
]
