"""
Chunking Strategies
===================

Each strategy is a plain function ``(text, options) -> chunks``;
``semantic_chunk`` dispatches on ``ChunkingStrategy`` and ``auto_chunk``
sniffs the content to pick one.

Only the semantic strategy awaits anything (the injected embedding
function), so the dispatchers are coroutines.
"""

import re
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from core.embedding_service import cosine_similarity
from core.logging_config import Logger, log_performance
from core.text_processor import TextProcessor, normalize_whitespace, split_sentences
from core.validation_and_errors import ChunkingException
from entity_extraction.entity_extractor import find_entities
from chunking.document_chunker import (
    ChunkingStrategy,
    EnhancedKnowledgeChunk,
    SemanticChunkOptions,
    accumulate_sentences,
    chunk_text,
    make_chunk,
)


logger = Logger(__name__)

_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_HEADING_ANYWHERE = re.compile(r"^#{1,6}\s+\S", re.MULTILINE)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_PLACEHOLDER = "__CODE_BLOCK_{}__"
_PLACEHOLDER_RE = re.compile(r"__CODE_BLOCK_(\d+)__")

HIERARCHICAL_MIN_LENGTH = 2000
SEMANTIC_MIN_SENTENCES = 20
ENTITY_AWARE_MIN_SENTENCES = 10


def _reindex(chunks: List[EnhancedKnowledgeChunk]) -> List[EnhancedKnowledgeChunk]:
    for i, chunk in enumerate(chunks):
        chunk.index = i
        chunk.id = f"chunk-{i}"
    return chunks


# ---------------------------------------------------------------------------
# Fixed
# ---------------------------------------------------------------------------

def fixed_chunk(text: str, options: SemanticChunkOptions) -> List[EnhancedKnowledgeChunk]:
    """Character windows of ``chunk_size`` with ``chunk_overlap``."""
    normalized = normalize_whitespace(text)
    processor = TextProcessor(options.chunk_size, options.chunk_overlap)
    pieces = processor.chunk_text(normalized)
    return [make_chunk(i, piece, options, ChunkingStrategy.FIXED) for i, piece in enumerate(pieces)]


# ---------------------------------------------------------------------------
# Sentence (baseline)
# ---------------------------------------------------------------------------

def sentence_chunk(text: str, options: SemanticChunkOptions) -> List[EnhancedKnowledgeChunk]:
    return chunk_text(text, options)


# ---------------------------------------------------------------------------
# Hierarchical (markdown headings)
# ---------------------------------------------------------------------------

def protect_code_blocks(text: str) -> Tuple[str, List[str]]:
    """Swap fenced code blocks for single-token placeholders."""
    blocks: List[str] = []

    def _stash(match: "re.Match[str]") -> str:
        blocks.append(match.group(0))
        return _PLACEHOLDER.format(len(blocks) - 1)

    return _CODE_BLOCK.sub(_stash, text), blocks


def restore_code_blocks(text: str, blocks: List[str]) -> str:
    if not blocks:
        return text
    return _PLACEHOLDER_RE.sub(lambda m: blocks[int(m.group(1))], text)


def parse_sections(text: str) -> List[Tuple[Optional[str], Optional[int], str]]:
    """
    Split markdown into ``(heading, level, body)`` sections.

    Text before the first heading becomes a section with no heading.
    """
    sections: List[Tuple[Optional[str], Optional[int], str]] = []
    heading: Optional[str] = None
    level: Optional[int] = None
    body: List[str] = []

    for line in text.splitlines():
        match = _HEADING.match(line)
        if match:
            if heading is not None or any(b.strip() for b in body):
                sections.append((heading, level, "\n".join(body)))
            heading, level, body = match.group(2), len(match.group(1)), []
        else:
            body.append(line)

    if heading is not None or any(b.strip() for b in body):
        sections.append((heading, level, "\n".join(body)))
    return sections


def hierarchical_chunk(text: str, options: SemanticChunkOptions) -> List[EnhancedKnowledgeChunk]:
    """
    One or more chunks per markdown section, each prefixed by its heading.

    Sections longer than ``chunk_size`` are split with the sentence packer.
    Heading-only sections produce no chunk.
    """
    blocks: List[str] = []
    if options.preserve_code_blocks:
        text, blocks = protect_code_blocks(text)

    chunks: List[EnhancedKnowledgeChunk] = []
    for heading, level, raw_body in parse_sections(text):
        body = normalize_whitespace(raw_body)
        if not body:
            continue

        prefix = f"{'#' * level} {heading}\n\n" if heading and level else ""
        if len(prefix) + len(body) <= options.chunk_size:
            pieces = [body]
        else:
            budget = max(options.chunk_size - len(prefix), options.min_chunk_size, 1)
            pieces = accumulate_sentences(
                split_sentences(body),
                budget,
                min(options.chunk_overlap, budget - 1),
                min(options.min_chunk_size, budget),
                atomic=_PLACEHOLDER_RE if blocks else None,
            )

        for piece in pieces:
            content = restore_code_blocks(prefix + piece, blocks)
            chunks.append(
                make_chunk(
                    len(chunks), content, options, ChunkingStrategy.HIERARCHICAL,
                    section_heading=heading, section_level=level,
                )
            )

    logger.debug(f"Hierarchical chunking produced {len(chunks)} chunks", strategy="hierarchical")
    return chunks


# ---------------------------------------------------------------------------
# Entity-aware
# ---------------------------------------------------------------------------

def entity_aware_chunk(text: str, options: SemanticChunkOptions) -> List[EnhancedKnowledgeChunk]:
    """
    Sentence packing that keeps entity-bearing sentences together.

    On a flush, the last sentence is carried into the next chunk when it
    holds an entity; otherwise the usual character overlap is carried.
    """
    sentences = split_sentences(normalize_whitespace(text))
    if not sentences:
        return []
    has_entity = [bool(find_entities(s)) for s in sentences]

    pieces: List[str] = []
    buffer: List[str] = []
    fresh: List[str] = []
    last_has_entity = False

    for sentence, sentence_has_entity in zip(sentences, has_entity):
        current = " ".join(buffer)
        if buffer and len(current) + len(sentence) + 1 > options.chunk_size and len(current) >= options.min_chunk_size:
            pieces.append(current)
            if last_has_entity:
                buffer = [buffer[-1]]
            elif options.chunk_overlap:
                buffer = [current[-options.chunk_overlap:].strip()]
            else:
                buffer = []
            fresh = []
        buffer.append(sentence)
        fresh.append(sentence)
        last_has_entity = sentence_has_entity

    tail = " ".join(buffer).strip()
    if tail:
        if len(tail) >= options.min_chunk_size or not pieces:
            pieces.append(tail)
        elif fresh:
            pieces[-1] = f"{pieces[-1]} {' '.join(fresh)}"

    return [make_chunk(i, piece, options, ChunkingStrategy.ENTITY_AWARE) for i, piece in enumerate(pieces)]


# ---------------------------------------------------------------------------
# Semantic (embedding similarity)
# ---------------------------------------------------------------------------

async def _embed_sentences(sentences: List[str], options: SemanticChunkOptions) -> List[Optional[List[float]]]:
    """Embed sentences one at a time, in order; failures become None."""
    vectors: List[Optional[List[float]]] = []
    for sentence in sentences:
        try:
            vectors.append(await options.get_embedding(sentence))
        except Exception as e:
            logger.warning(f"Sentence embedding failed, treating as similar: {e}")
            vectors.append(None)
    return vectors


async def embedding_chunk(text: str, options: SemanticChunkOptions) -> List[EnhancedKnowledgeChunk]:
    """
    Group consecutive sentences while neighbouring embeddings stay similar.

    A group closes when similarity to the next sentence drops below the
    threshold (once it holds ``min_sentences_per_chunk``) or when it reaches
    ``max_sentences_per_chunk``. Missing vectors count as similarity 1.0.
    """
    if options.get_embedding is None:
        logger.warning("Semantic chunking requested without an embedding function; using sentence strategy")
        return sentence_chunk(text, options)

    sentences = split_sentences(normalize_whitespace(text))
    if not sentences:
        return []

    vectors = await _embed_sentences(sentences, options)

    groups: List[List[str]] = [[sentences[0]]]
    for i in range(1, len(sentences)):
        previous, current = vectors[i - 1], vectors[i]
        similarity = cosine_similarity(previous, current) if previous is not None and current is not None else 1.0
        group = groups[-1]
        full = len(group) >= options.max_sentences_per_chunk
        drifted = similarity < options.semantic_similarity_threshold and len(group) >= options.min_sentences_per_chunk
        if full or drifted:
            groups.append([sentences[i]])
        else:
            group.append(sentences[i])

    return [
        make_chunk(i, " ".join(group), options, ChunkingStrategy.SEMANTIC)
        for i, group in enumerate(groups)
    ]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

SYNC_STRATEGIES: Dict[ChunkingStrategy, Callable[[str, SemanticChunkOptions], List[EnhancedKnowledgeChunk]]] = {
    ChunkingStrategy.FIXED: fixed_chunk,
    ChunkingStrategy.SENTENCE: sentence_chunk,
    ChunkingStrategy.HIERARCHICAL: hierarchical_chunk,
    ChunkingStrategy.ENTITY_AWARE: entity_aware_chunk,
}


@log_performance
async def semantic_chunk(text: str, options: Optional[SemanticChunkOptions] = None) -> List[EnhancedKnowledgeChunk]:
    """
    Chunk *text* with ``options.strategy`` (semantic when unset).

    Args:
        text: Raw document text
        options: Strategy, sizing and embedding options

    Returns:
        Chunks in document order, re-indexed from ``chunk-0``
    """
    opts = options or SemanticChunkOptions()
    opts.validate()
    try:
        strategy = ChunkingStrategy(opts.strategy or ChunkingStrategy.SEMANTIC)
    except ValueError as e:
        raise ChunkingException(f"Unknown chunking strategy: {opts.strategy!r}") from e

    if strategy is ChunkingStrategy.SEMANTIC:
        chunks = await embedding_chunk(text, opts)
    else:
        chunks = SYNC_STRATEGIES[strategy](text, opts)

    logger.info(f"Chunked {len(text)} chars into {len(chunks)} chunks", strategy=strategy.value)
    return _reindex(chunks)


def select_strategy(text: str, has_embedding: bool) -> ChunkingStrategy:
    """Pick a strategy from the shape of the content."""
    if _HEADING_ANYWHERE.search(text) and len(text) > HIERARCHICAL_MIN_LENGTH:
        return ChunkingStrategy.HIERARCHICAL
    if _CODE_BLOCK.search(text):
        return ChunkingStrategy.HIERARCHICAL

    sentence_count = len(split_sentences(normalize_whitespace(text)))
    if has_embedding and sentence_count > SEMANTIC_MIN_SENTENCES:
        return ChunkingStrategy.SEMANTIC
    if sentence_count > ENTITY_AWARE_MIN_SENTENCES:
        return ChunkingStrategy.ENTITY_AWARE
    return ChunkingStrategy.SENTENCE


async def auto_chunk(text: str, options: Optional[SemanticChunkOptions] = None) -> List[EnhancedKnowledgeChunk]:
    """Chunk with the strategy ``select_strategy`` picks for *text*."""
    opts = options or SemanticChunkOptions()
    strategy = select_strategy(text, opts.get_embedding is not None)
    logger.debug(f"Auto-selected {strategy.value} chunking", strategy=strategy.value)
    return await semantic_chunk(text, replace(opts, strategy=strategy))
