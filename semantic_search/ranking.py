# Ranking helpers
# BM25 lexical scoring, reciprocal rank fusion and maximal marginal
# relevance, plus a search that fuses hybrid and BM25 rankings.

import math
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from core.embedding_service import cosine_similarity
from core.logging_config import Logger, log_performance
from core.service_interfaces import EmbeddingFunction
from entity_extraction.keyword_extractor import tokenize
from knowledge_graph.graph_builder import KnowledgeGraph
from semantic_search.hybrid_search import HybridSearchOptions, HybridSearchResult, hybrid_search


logger = Logger(__name__)


@dataclass
class BM25Config:
    k1: float = 1.5
    b: float = 0.75


@dataclass
class RankedItem:
    id: str
    score: float


@dataclass
class MMRItem:
    id: str
    score: float
    embedding: Optional[Sequence[float]] = None


class BM25:
    """
    Okapi BM25 over a fixed document collection.

    Documents are tokenized with the keyword tokenizer, so stopwords and
    short tokens never contribute.
    """

    def __init__(self, documents: Mapping[str, str], config: Optional[BM25Config] = None):
        self.config = config or BM25Config()
        self.doc_tokens: Dict[str, Counter] = {}
        self.doc_lengths: Dict[str, int] = {}
        self.doc_freq: Counter = Counter()

        for doc_id, text in documents.items():
            tokens = tokenize(text)
            self.doc_tokens[doc_id] = Counter(tokens)
            self.doc_lengths[doc_id] = len(tokens)
            self.doc_freq.update(set(tokens))

        self.doc_count = len(documents)
        self.avg_length = (sum(self.doc_lengths.values()) / self.doc_count) if self.doc_count else 0.0

    def idf(self, term: str) -> float:
        df = self.doc_freq.get(term, 0)
        return math.log(1 + (self.doc_count - df + 0.5) / (df + 0.5))

    def score(self, query: str, doc_id: str) -> float:
        counts = self.doc_tokens.get(doc_id)
        if not counts:
            return 0.0
        k1, b = self.config.k1, self.config.b
        norm = 1 - b + b * (self.doc_lengths[doc_id] / self.avg_length) if self.avg_length else 1.0
        total = 0.0
        for term in set(tokenize(query)):
            tf = counts.get(term, 0)
            if tf:
                total += self.idf(term) * tf * (k1 + 1) / (tf + k1 * norm)
        return total

    def search(self, query: str, top_k: Optional[int] = None) -> List[RankedItem]:
        """Documents with a positive score, best first."""
        ranked = [RankedItem(doc_id, self.score(query, doc_id)) for doc_id in self.doc_tokens]
        ranked = [item for item in ranked if item.score > 0]
        ranked.sort(key=lambda item: item.score, reverse=True)
        return ranked[:top_k] if top_k is not None else ranked


def reciprocal_rank_fusion(
    rankings: Iterable[Sequence[Union[str, RankedItem]]],
    k: int = 60,
) -> List[RankedItem]:
    """
    Fuse several best-first rankings: each id earns ``1 / (k + rank)`` per
    list it appears in (rank is 1-based). Ties keep first-seen order.
    """
    scores: Dict[str, float] = {}
    for ranking in rankings:
        for rank, item in enumerate(ranking, start=1):
            item_id = item.id if isinstance(item, RankedItem) else item
            scores[item_id] = scores.get(item_id, 0.0) + 1.0 / (k + rank)
    fused = [RankedItem(item_id, score) for item_id, score in scores.items()]
    fused.sort(key=lambda item: item.score, reverse=True)
    return fused


def mmr_rerank(
    items: Sequence[MMRItem],
    lambda_: float = 0.7,
    top_k: Optional[int] = None,
) -> List[MMRItem]:
    """
    Maximal marginal relevance: repeatedly pick the item maximising
    ``lambda * score - (1 - lambda) * max_similarity_to_picked``.

    Items without an embedding are never penalised for redundancy.
    """
    limit = len(items) if top_k is None else min(top_k, len(items))
    remaining = list(items)
    selected: List[MMRItem] = []

    while remaining and len(selected) < limit:
        def marginal(candidate: MMRItem) -> float:
            redundancy = max(
                (cosine_similarity(candidate.embedding, s.embedding) for s in selected),
                default=0.0,
            )
            return lambda_ * candidate.score - (1 - lambda_) * redundancy

        best = max(remaining, key=marginal)
        selected.append(best)
        remaining.remove(best)
    return selected


@dataclass
class EnhancedHybridSearchOptions(HybridSearchOptions):
    use_bm25: bool = True
    use_mmr: bool = True
    rrf_k: int = 60
    mmr_lambda: float = 0.7
    bm25: BM25Config = field(default_factory=BM25Config)


@log_performance
async def enhanced_hybrid_search(
    query: str,
    graph: KnowledgeGraph,
    get_query_embedding: Optional[EmbeddingFunction],
    node_embeddings: Optional[Mapping[str, Sequence[float]]] = None,
    options: Optional[EnhancedHybridSearchOptions] = None,
) -> List[HybridSearchResult]:
    """
    Hybrid search fused with BM25 by reciprocal rank, then diversified.

    Candidates are nodes scoring at least ``min_score`` in hybrid search
    plus any node BM25 matches. They are ordered by fused rank, optionally
    MMR re-ranked against node embeddings, and cut to ``top_k``. Each
    result keeps its hybrid score and explanation.
    """
    opts = options or EnhancedHybridSearchOptions()
    node_embeddings = node_embeddings or {}
    if not graph.nodes:
        return []

    everything = await hybrid_search(
        query,
        graph,
        get_query_embedding,
        node_embeddings,
        replace(opts, min_score=0.0, top_k=len(graph.nodes)),
    )
    by_id = {r.node_id: r for r in everything}
    hybrid_ranking = [r.node_id for r in everything if r.score >= opts.min_score]

    rankings = [hybrid_ranking]
    if opts.use_bm25:
        bm25 = BM25({node_id: node.content for node_id, node in graph.nodes.items()}, opts.bm25)
        rankings.append(bm25.search(query))
    fused = reciprocal_rank_fusion(rankings, k=opts.rrf_k)

    if opts.use_mmr and fused:
        top = fused[0].score
        candidates = [
            MMRItem(item.id, item.score / top, node_embeddings.get(item.id, graph.nodes[item.id].embedding))
            for item in fused
        ]
        order = [item.id for item in mmr_rerank(candidates, opts.mmr_lambda, opts.top_k)]
    else:
        order = [item.id for item in fused[:opts.top_k]]

    logger.debug(f"Enhanced search fused {len(rankings)} rankings into {len(fused)} candidates")
    return [by_id[node_id] for node_id in order]
