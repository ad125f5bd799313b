"""
Document Chunker
================

Sentence-aware baseline chunking plus the chunk data model shared by every
strategy.

Chunks are pydantic models so a knowledge base can round-trip them through
a document store with ``model_dump(mode="json")``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from pydantic import BaseModel, Field

from core.logging_config import Logger, log_performance
from core.service_interfaces import EmbeddingFunction
from core.text_processor import normalize_whitespace, split_sentences
from core.validation_and_errors import DataValidator
from entity_extraction.entity_extractor import extract_entities
from entity_extraction.keyword_extractor import extract_keywords


logger = Logger(__name__)

# Per-chunk annotation caps; a whole document that fits in one chunk
# keeps the larger document caps.
CHUNK_ENTITY_CAP = 15
CHUNK_KEYWORD_CAP = 8
DOCUMENT_ENTITY_CAP = 20
DOCUMENT_KEYWORD_CAP = 10


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

class ChunkingStrategy(str, Enum):
    FIXED = "fixed"
    SENTENCE = "sentence"
    HIERARCHICAL = "hierarchical"
    ENTITY_AWARE = "entity_aware"
    SEMANTIC = "semantic"


@dataclass
class ChunkOptions:
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    extract_entities: bool = True

    def validate(self) -> "ChunkOptions":
        DataValidator.validate_chunk_options(self.chunk_size, self.chunk_overlap, self.min_chunk_size)
        return self


@dataclass
class SemanticChunkOptions(ChunkOptions):
    """Options for the strategy-dispatching chunkers"""
    strategy: Optional[ChunkingStrategy] = None
    get_embedding: Optional[EmbeddingFunction] = None
    semantic_similarity_threshold: float = 0.5
    min_sentences_per_chunk: int = 2
    max_sentences_per_chunk: int = 10
    preserve_code_blocks: bool = True


class ChunkEntity(BaseModel):
    type: str
    value: str


class EnhancedKnowledgeChunk(BaseModel):
    """A retrieval-sized slice of one document"""
    id: str = Field(..., description="chunk-<index>, unique within its document only")
    content: str
    index: int = Field(..., ge=0)
    entities: Optional[List[ChunkEntity]] = None
    keywords: Optional[List[str]] = None
    section_heading: Optional[str] = None
    section_level: Optional[int] = Field(default=None, ge=1, le=6)
    chunk_strategy: Optional[ChunkingStrategy] = None


class KeyEntity(BaseModel):
    type: str
    value: str


class DocumentSummary(BaseModel):
    preview: str
    entity_count: int
    key_entities: List[KeyEntity] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers shared by the strategies
# ---------------------------------------------------------------------------

def annotate(
    content: str,
    entity_cap: int = CHUNK_ENTITY_CAP,
    keyword_cap: int = CHUNK_KEYWORD_CAP,
) -> Tuple[List[ChunkEntity], List[str]]:
    """Entities and keywords for a chunk's own content, capped."""
    extraction = extract_entities(content)
    entities = [
        ChunkEntity(type=e.type.value, value=e.value)
        for e in extraction.entities[:entity_cap]
    ]
    return entities, extraction.keywords[:keyword_cap]


def make_chunk(
    index: int,
    content: str,
    options: ChunkOptions,
    strategy: Optional[ChunkingStrategy] = None,
    section_heading: Optional[str] = None,
    section_level: Optional[int] = None,
    entity_cap: int = CHUNK_ENTITY_CAP,
    keyword_cap: int = CHUNK_KEYWORD_CAP,
) -> EnhancedKnowledgeChunk:
    chunk = EnhancedKnowledgeChunk(
        id=f"chunk-{index}",
        content=content,
        index=index,
        section_heading=section_heading,
        section_level=section_level,
        chunk_strategy=strategy,
    )
    if options.extract_entities:
        chunk.entities, chunk.keywords = annotate(content, entity_cap, keyword_cap)
    return chunk


def _carry_start(buffer: str, chunk_overlap: int, atomic: Optional[Pattern[str]]) -> int:
    start = max(0, len(buffer) - chunk_overlap)
    if atomic is not None:
        for match in atomic.finditer(buffer):
            if match.start() < start < match.end():
                return match.start()
    return start


def accumulate_sentences(
    sentences: List[str],
    chunk_size: int,
    chunk_overlap: int,
    min_chunk_size: int,
    atomic: Optional[Pattern[str]] = None,
) -> List[str]:
    """
    Greedy sentence packing with a sliding character overlap.

    A buffer is flushed when the next sentence would push it past
    ``chunk_size`` and it already holds ``min_chunk_size`` characters. The
    next buffer starts with the flushed buffer's last ``chunk_overlap``
    characters. A trailing buffer below ``min_chunk_size`` is appended to
    the previous chunk (its fresh sentences only) so no sentence is lost.

    Matches of *atomic* are never split by the overlap: a carry that would
    start inside one starts at the beginning of that match instead.
    """
    pieces: List[str] = []
    buffer = ""
    fresh: List[str] = []

    for sentence in sentences:
        if buffer and len(buffer) + len(sentence) > chunk_size and len(buffer) >= min_chunk_size:
            pieces.append(buffer.strip())
            carry = buffer[_carry_start(buffer, chunk_overlap, atomic):] if chunk_overlap else ""
            buffer = f"{carry} {sentence}" if carry else sentence
            fresh = [sentence]
        else:
            buffer = f"{buffer} {sentence}" if buffer else sentence
            fresh.append(sentence)

    tail = buffer.strip()
    if tail:
        if len(tail) >= min_chunk_size or not pieces:
            pieces.append(tail)
        else:
            pieces[-1] = f"{pieces[-1]} {' '.join(fresh)}"
    return pieces


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

@log_performance
def chunk_text(text: str, options: Optional[ChunkOptions] = None) -> List[EnhancedKnowledgeChunk]:
    """
    Split *text* into sentence-aligned chunks with character overlap.

    Args:
        text: Raw document text
        options: Sizing and annotation options (defaults: 1000/200/100)

    Returns:
        Chunks in document order, ids ``chunk-0``, ``chunk-1``, ...
    """
    opts = (options or ChunkOptions()).validate()
    normalized = normalize_whitespace(text)
    if not normalized:
        return []

    if len(normalized) <= opts.chunk_size:
        return [
            make_chunk(
                0, normalized, opts, ChunkingStrategy.SENTENCE,
                entity_cap=DOCUMENT_ENTITY_CAP, keyword_cap=DOCUMENT_KEYWORD_CAP,
            )
        ]

    pieces = accumulate_sentences(
        split_sentences(normalized), opts.chunk_size, opts.chunk_overlap, opts.min_chunk_size
    )
    chunks = [make_chunk(i, piece, opts, ChunkingStrategy.SENTENCE) for i, piece in enumerate(pieces)]
    logger.debug(f"Sentence chunking produced {len(chunks)} chunks from {len(normalized)} chars")
    return chunks


def get_document_summary(text: str) -> DocumentSummary:
    """Preview, entity count, up to five distinct entities and ten keywords."""
    extraction = extract_entities(text)
    preview = text[:200].strip() + ("..." if len(text) > 200 else "")

    seen = set()
    key_entities: List[KeyEntity] = []
    for entity in extraction.entities:
        key = (entity.type, entity.value)
        if key in seen:
            continue
        seen.add(key)
        key_entities.append(KeyEntity(type=entity.type.value, value=entity.value))
        if len(key_entities) == 5:
            break

    return DocumentSummary(
        preview=preview,
        entity_count=len(extraction.entities),
        key_entities=key_entities,
        keywords=extract_keywords(text, 10),
    )
