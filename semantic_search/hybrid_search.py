# Hybrid Search Engine
# Ranks knowledge-graph nodes by a weighted blend of embedding similarity
# (neural) and entity, keyword and graph-neighbour evidence (symbolic).
# Every result carries the explanation of how its score was reached.

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from core.embedding_service import cosine_similarity
from core.logging_config import Logger, log_performance
from core.service_interfaces import EmbeddingFunction
from core.validation_and_errors import DataValidator, EmbeddingException
from entity_extraction.entity_extractor import (
    EntityType,
    ExtractedEntity,
    entity_match_value,
    extract_entities,
)
from knowledge_graph.graph_builder import KnowledgeGraph, KnowledgeNode, RelationType, entity_key


logger = Logger(__name__)

DEFAULT_ENTITY_BOOST: Dict[str, float] = {
    "date": 1.5,
    "time": 1.2,
    "datetime": 1.5,
    "money": 2.0,
    "percentage": 1.5,
    "email": 1.8,
    "phone": 1.8,
    "url": 1.3,
    "number": 1.0,
    "card": 2.0,
    "account": 2.0,
    "person": 1.5,
    "organization": 1.5,
    "location": 1.3,
    "duration": 1.2,
    "ordinal": 1.0,
    "keyword": 1.0,
}

COMPARISON_BOOST_MULTIPLIER = 2.5
GRAPH_VOTE_FACTOR = 0.5
TEMPORAL_HALF_LIFE_DAYS = 365.0

_AMOUNT = r"\$?(\d+(?:,\d{3})*(?:\.\d{2})?)"
_GREATER_THAN = re.compile(r"(?:over|above|greater than|more than|>)\s*" + _AMOUNT)
_LESS_THAN = re.compile(r"(?:under|below|less than|<)\s*" + _AMOUNT)


@dataclass
class HybridSearchOptions:
    top_k: int = 5
    semantic_weight: float = 0.5
    entity_weight: float = 0.25
    keyword_weight: float = 0.15
    graph_weight: float = 0.1
    min_score: float = 0.3
    entity_boost: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ENTITY_BOOST))
    temporal_decay: bool = True
    # Rank symbolically instead of raising when the query embedding fails
    symbolic_fallback: bool = False
    # Clock used for temporal decay; None means now
    reference_time: Optional[datetime] = None

    def validate(self) -> "HybridSearchOptions":
        DataValidator.validate_search_weights(
            {
                "semantic_weight": self.semantic_weight,
                "entity_weight": self.entity_weight,
                "keyword_weight": self.keyword_weight,
                "graph_weight": self.graph_weight,
            },
            self.min_score,
            self.top_k,
        )
        return self


@dataclass
class EntityMatch:
    type: str
    value: str
    boost: float


@dataclass
class GraphConnection:
    node_id: str
    relation_type: RelationType
    weight: float


@dataclass
class SearchResultExplanation:
    semantic_score: float = 0.0
    entity_matches: List[EntityMatch] = field(default_factory=list)
    keyword_matches: List[str] = field(default_factory=list)
    graph_connections: List[GraphConnection] = field(default_factory=list)
    temporal_relevance: Optional[float] = None


@dataclass
class HybridSearchResult:
    node_id: str
    content: str
    title: str
    score: float
    explanation: SearchResultExplanation

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for connection in data["explanation"]["graph_connections"]:
            connection["relation_type"] = connection["relation_type"].value
        return data


@dataclass
class QueryAnalysis:
    """Symbolic reading of a query, shared by every node's scoring"""
    query: str
    entities: List[ExtractedEntity]
    keywords: List[str]
    money_greater_than: Optional[float] = None
    money_less_than: Optional[float] = None
    embedding: Optional[List[float]] = None

    @property
    def has_comparison(self) -> bool:
        return self.money_greater_than is not None or self.money_less_than is not None

    @property
    def entity_keys(self) -> Set[str]:
        return {entity_key(e) for e in self.entities}


def _parse_amount(raw: str) -> float:
    return float(raw.replace(",", ""))


def _format_amount(amount: float) -> str:
    return str(int(amount)) if amount.is_integer() else str(amount)


def detect_money_thresholds(query: str) -> Tuple[Optional[float], Optional[float]]:
    """``(greater_than, less_than)`` amounts from phrases like "over $500"."""
    lowered = query.lower()
    over = _GREATER_THAN.search(lowered)
    under = _LESS_THAN.search(lowered)
    return (
        _parse_amount(over.group(1)) if over else None,
        _parse_amount(under.group(1)) if under else None,
    )


def analyze_query(query: str) -> QueryAnalysis:
    extraction = extract_entities(query)
    greater_than, less_than = detect_money_thresholds(query)
    return QueryAnalysis(
        query=query,
        entities=extraction.entities,
        keywords=extraction.keywords,
        money_greater_than=greater_than,
        money_less_than=less_than,
    )


async def embed_query(
    query: str,
    get_query_embedding: Optional[EmbeddingFunction],
    symbolic_fallback: bool,
) -> Optional[List[float]]:
    """
    Embed the query. Without an embedding function the search is purely
    symbolic; a failing call raises unless *symbolic_fallback* is set.
    """
    if get_query_embedding is None:
        logger.debug("No query embedding function; semantic component disabled")
        return None
    try:
        return list(await get_query_embedding(query))
    except Exception as e:
        if not symbolic_fallback:
            if isinstance(e, EmbeddingException):
                raise
            raise EmbeddingException(f"Query embedding failed: {e}") from e
        logger.warning(f"Query embedding failed, ranking symbolically: {e}")
        return None


# ---------------------------------------------------------------------------
# Component scores
# ---------------------------------------------------------------------------

def _entity_score(node: KnowledgeNode, analysis: QueryAnalysis, boosts: Dict[str, float], explanation: SearchResultExplanation) -> float:
    score = 0.0

    if analysis.has_comparison:
        money_boost = boosts.get(EntityType.MONEY.value, 1.0) * COMPARISON_BOOST_MULTIPLIER
        for entity in node.entities:
            if entity.type is not EntityType.MONEY or not isinstance(entity.normalized, (int, float)):
                continue
            amount = float(entity.normalized)
            gt, lt = analysis.money_greater_than, analysis.money_less_than
            if gt is not None and amount > gt:
                label = f"{entity.value} (>{_format_amount(gt)})"
            elif lt is not None and amount < lt:
                label = f"{entity.value} (<{_format_amount(lt)})"
            else:
                continue
            score += money_boost
            explanation.entity_matches.append(EntityMatch(EntityType.MONEY.value, label, money_boost))

    for query_entity in analysis.entities:
        if query_entity.type is EntityType.MONEY and analysis.has_comparison:
            continue
        query_value = entity_match_value(query_entity)
        for entity in node.entities:
            if entity.type is not query_entity.type:
                continue
            node_value = entity_match_value(entity)
            if query_value == node_value or query_value in node_value or node_value in query_value:
                boost = boosts.get(query_entity.type.value, 1.0)
                score += boost
                explanation.entity_matches.append(EntityMatch(query_entity.type.value, entity.value, boost))

    normalizer = max(len(analysis.entities), 1 if analysis.has_comparison else 0)
    return min(1.0, score / normalizer) if normalizer else score


def _keyword_score(node: KnowledgeNode, analysis: QueryAnalysis, explanation: SearchResultExplanation) -> float:
    node_keywords = set(node.keywords)
    query_keywords = list(dict.fromkeys(analysis.keywords))
    explanation.keyword_matches = [k for k in query_keywords if k in node_keywords]
    if not query_keywords:
        return 0.0
    return len(explanation.keyword_matches) / len(query_keywords)


def _graph_score(graph: KnowledgeGraph, node: KnowledgeNode, query_keys: Set[str], explanation: SearchResultExplanation) -> float:
    """Neighbours holding a query entity vote ``weight * 0.5`` each, capped at 1."""
    if not query_keys:
        return 0.0
    score = 0.0
    for relation in graph.relations_of(node.id):
        neighbor_id = relation.other(node.id)
        neighbor = graph.nodes.get(neighbor_id)
        if neighbor is None:
            continue
        if any(entity_key(e) in query_keys for e in neighbor.entities):
            score += relation.weight * GRAPH_VOTE_FACTOR
            explanation.graph_connections.append(GraphConnection(neighbor_id, relation.type, relation.weight))
    return min(1.0, score)


def temporal_relevance(created_at: Optional[datetime], now: datetime) -> Optional[float]:
    """``exp(-age_days / 365)``; future timestamps count as age zero."""
    if created_at is None:
        return None
    # Naive timestamps are taken as UTC
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    age_days = max(0.0, (now - created_at).total_seconds() / 86400.0)
    return math.exp(-age_days / TEMPORAL_HALF_LIFE_DAYS)


def score_node(
    graph: KnowledgeGraph,
    node: KnowledgeNode,
    analysis: QueryAnalysis,
    node_embedding: Optional[Sequence[float]],
    options: HybridSearchOptions,
    now: datetime,
) -> HybridSearchResult:
    explanation = SearchResultExplanation()

    if analysis.embedding is not None and node_embedding is not None:
        explanation.semantic_score = cosine_similarity(analysis.embedding, node_embedding)

    entity_score = _entity_score(node, analysis, options.entity_boost, explanation)
    keyword_score = _keyword_score(node, analysis, explanation)
    graph_score = _graph_score(graph, node, analysis.entity_keys, explanation)

    score = (
        options.semantic_weight * explanation.semantic_score
        + options.entity_weight * entity_score
        + options.keyword_weight * keyword_score
        + options.graph_weight * graph_score
    )

    if options.temporal_decay:
        explanation.temporal_relevance = temporal_relevance(node.metadata.get("created_at"), now)
        if explanation.temporal_relevance is not None:
            score *= 0.5 + 0.5 * explanation.temporal_relevance

    return HybridSearchResult(node.id, node.content, node.title, score, explanation)


@log_performance
async def hybrid_search(
    query: str,
    graph: KnowledgeGraph,
    get_query_embedding: Optional[EmbeddingFunction],
    node_embeddings: Optional[Mapping[str, Sequence[float]]] = None,
    options: Optional[HybridSearchOptions] = None,
) -> List[HybridSearchResult]:
    """
    Rank graph nodes for *query*.

    Args:
        query: Free-text query
        graph: Graph built by ``create_knowledge_graph``
        get_query_embedding: Async embedding function, or None for a
            symbolic-only search
        node_embeddings: Vectors by node id (falls back to ``node.embedding``)
        options: Weights, boosts and cut-offs

    Returns:
        At most ``top_k`` results scoring at least ``min_score``, best first

    Raises:
        EmbeddingException: the query embedding failed and
            ``symbolic_fallback`` is off
    """
    opts = (options or HybridSearchOptions()).validate()
    node_embeddings = node_embeddings or {}

    # ----------- PHASE 1: read the query -----------
    analysis = analyze_query(query)
    if analysis.has_comparison:
        logger.debug(
            f"Money comparison thresholds: >{analysis.money_greater_than} <{analysis.money_less_than}"
        )
    analysis.embedding = await embed_query(query, get_query_embedding, opts.symbolic_fallback)

    # ----------- PHASE 2: score every node -----------
    now = opts.reference_time or datetime.now(timezone.utc)
    scored = [
        score_node(graph, node, analysis, node_embeddings.get(node_id, node.embedding), opts, now)
        for node_id, node in graph.nodes.items()
    ]

    # ----------- PHASE 3: cut, rank, truncate -----------
    results = [r for r in scored if r.score >= opts.min_score]
    results.sort(key=lambda r: r.score, reverse=True)
    logger.info(f"Hybrid search kept {len(results)} of {len(scored)} nodes", node_count=len(scored))
    return results[:opts.top_k]
