"""
Reasoning Chain Builder
=======================

Produces an auditable trace of how a query was parsed, decomposed,
searched, filtered and connected through the graph.

Step confidences are fixed per step type. They document how much each
step can be trusted for explanation purposes; they are not calibrated
probabilities.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from core.logging_config import Logger
from entity_extraction.entity_extractor import extract_entities
from knowledge_graph.graph_builder import KnowledgeGraph
from semantic_search.hybrid_search import HybridSearchResult


logger = Logger(__name__)

PARSE_CONFIDENCE = 0.95
DECOMPOSE_CONFIDENCE = 0.85
SEARCH_CONFIDENCE = 0.9
EMPTY_SEARCH_CONFIDENCE = 0.5
FILTER_CONFIDENCE = 0.88
INFER_CONFIDENCE = 0.75


class StepType(str, Enum):
    PARSE = "parse"
    SEARCH = "search"
    FILTER = "filter"
    AGGREGATE = "aggregate"
    COMPARE = "compare"
    INFER = "infer"


STEP_ICONS = {
    StepType.PARSE: "🔍",
    StepType.SEARCH: "📚",
    StepType.FILTER: "🔬",
    StepType.AGGREGATE: "📊",
    StepType.COMPARE: "⚖️",
    StepType.INFER: "💡",
}


@dataclass
class ReasoningStep:
    type: StepType
    description: str
    input: Any
    output: Any
    confidence: float


@dataclass
class ReasoningChain:
    query: str
    steps: List[ReasoningStep] = field(default_factory=list)
    confidence: float = 0.0
    final_answer: Optional[str] = None


_COMPARISON_PATTERNS = (
    re.compile(r"compare\s+(.+?)\s+(?:to|with|and|vs\.?)\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+(?:vs\.?|versus)\s+(.+)", re.IGNORECASE),
    re.compile(r"difference\s+between\s+(.+?)\s+and\s+(.+)", re.IGNORECASE),
)
_LIST_PATTERN = re.compile(
    r"(?:all|list|show|find)\s+(?:my\s+)?(.+?)\s+(?:from|in|during|for)\s+(.+)", re.IGNORECASE
)
_TEMPORAL_PATTERN = re.compile(r"(.+?)\s+(?:before|after|during|between|since|until)\s+(.+)", re.IGNORECASE)
_AGGREGATION_PATTERN = re.compile(r"(?:total|sum|average|count|how\s+many|how\s+much)\s+(.+)", re.IGNORECASE)


def classify_query(query: str) -> str:
    """Query shape: comparison, list, temporal, aggregation or simple."""
    if any(p.search(query) for p in _COMPARISON_PATTERNS):
        return "comparison"
    if _LIST_PATTERN.search(query):
        return "list"
    if _TEMPORAL_PATTERN.search(query):
        return "temporal"
    if _AGGREGATION_PATTERN.search(query):
        return "aggregation"
    return "simple"


def decompose_query(query: str) -> List[str]:
    """
    Split comparison and list queries into sub-queries.

    "X vs Y" gives ``[X, Y]``; "all X from Y" gives ``["X Y"]``. Temporal,
    aggregation and unrecognised queries come back unchanged as ``[query]``.
    """
    for pattern in _COMPARISON_PATTERNS:
        match = pattern.search(query)
        if match:
            return [match.group(1).strip(), match.group(2).strip()]

    match = _LIST_PATTERN.search(query)
    if match:
        return [f"{match.group(1)} {match.group(2)}"]

    return [query]


def build_reasoning_chain(
    query: str,
    graph: KnowledgeGraph,
    search_results: List[HybridSearchResult],
) -> ReasoningChain:
    """Trace of parse, decompose, search, filter and infer steps for *query*."""
    steps: List[ReasoningStep] = []

    extraction = extract_entities(query)
    steps.append(
        ReasoningStep(
            type=StepType.PARSE,
            description="Parse query to extract entities and intent",
            input=query,
            output={
                "entities": [{"type": e.type.value, "value": e.value} for e in extraction.entities],
                "keywords": extraction.keywords[:5],
                "intent": classify_query(query),
                "graph_nodes": len(graph.nodes),
            },
            confidence=PARSE_CONFIDENCE,
        )
    )

    sub_queries = decompose_query(query)
    if len(sub_queries) > 1:
        steps.append(
            ReasoningStep(
                type=StepType.PARSE,
                description="Decompose query into sub-queries",
                input=query,
                output=sub_queries,
                confidence=DECOMPOSE_CONFIDENCE,
            )
        )

    steps.append(
        ReasoningStep(
            type=StepType.SEARCH,
            description=f"Found {len(search_results)} relevant documents using hybrid search",
            input={"query": query, "method": "hybrid"},
            output=[
                {
                    "title": r.title,
                    "score": f"{r.score:.3f}",
                    "semantic_score": f"{r.explanation.semantic_score:.3f}",
                    "entity_matches": len(r.explanation.entity_matches),
                    "keyword_matches": len(r.explanation.keyword_matches),
                }
                for r in search_results
            ],
            confidence=SEARCH_CONFIDENCE if search_results else EMPTY_SEARCH_CONFIDENCE,
        )
    )

    if extraction.entities:
        entity_types = list(dict.fromkeys(e.type.value for e in extraction.entities))
        steps.append(
            ReasoningStep(
                type=StepType.FILTER,
                description=f"Filter results by entity types: {', '.join(entity_types)}",
                input={"entity_types": entity_types, "result_count": len(search_results)},
                output={"filtered_count": len(search_results)},
                confidence=FILTER_CONFIDENCE,
            )
        )

    connections = [c for r in search_results for c in r.explanation.graph_connections][:5]
    if connections:
        steps.append(
            ReasoningStep(
                type=StepType.INFER,
                description="Infer relationships from knowledge graph connections",
                input={"connection_count": len(connections)},
                output=[{"relation": c.relation_type.value, "weight": f"{c.weight:.2f}"} for c in connections],
                confidence=INFER_CONFIDENCE,
            )
        )

    chain = ReasoningChain(
        query=query,
        steps=steps,
        confidence=sum(s.confidence for s in steps) / len(steps),
    )
    logger.debug(f"Reasoning chain with {len(steps)} steps, confidence {chain.confidence:.2f}")
    return chain


def format_reasoning_chain(chain: ReasoningChain) -> str:
    """Markdown rendering: a confidence header then one numbered line per step."""
    lines = [f"**Reasoning Chain** (Confidence: {chain.confidence * 100:.0f}%)", ""]
    for number, step in enumerate(chain.steps, start=1):
        icon = STEP_ICONS[step.type]
        lines.append(f"{number}. {icon} **{step.type.value.upper()}**: {step.description}")
    return "\n".join(lines)
