# Semantic Search Module
# Hybrid neural/symbolic ranking over the knowledge graph, with
# explanations and reasoning traces

from .hybrid_search import (
    DEFAULT_ENTITY_BOOST,
    EntityMatch,
    GraphConnection,
    HybridSearchOptions,
    HybridSearchResult,
    SearchResultExplanation,
    detect_money_thresholds,
    hybrid_search,
)

from .reasoning_chain import (
    ReasoningChain,
    ReasoningStep,
    StepType,
    build_reasoning_chain,
    classify_query,
    decompose_query,
    format_reasoning_chain,
)

from .ranking import (
    BM25,
    BM25Config,
    EnhancedHybridSearchOptions,
    MMRItem,
    RankedItem,
    enhanced_hybrid_search,
    mmr_rerank,
    reciprocal_rank_fusion,
)

from .query_expansion import (
    ExpandedQuery,
    QueryExpander,
    QueryExpansionOptions,
    add_acronym,
    add_synonyms,
    expand_acronym,
    expand_query,
    get_synonyms,
)

__all__ = [
    # Hybrid search
    'DEFAULT_ENTITY_BOOST',
    'EntityMatch',
    'GraphConnection',
    'HybridSearchOptions',
    'HybridSearchResult',
    'SearchResultExplanation',
    'detect_money_thresholds',
    'hybrid_search',

    # Reasoning
    'ReasoningChain',
    'ReasoningStep',
    'StepType',
    'build_reasoning_chain',
    'classify_query',
    'decompose_query',
    'format_reasoning_chain',

    # Ranking
    'BM25',
    'BM25Config',
    'EnhancedHybridSearchOptions',
    'MMRItem',
    'RankedItem',
    'enhanced_hybrid_search',
    'mmr_rerank',
    'reciprocal_rank_fusion',

    # Query expansion
    'ExpandedQuery',
    'QueryExpander',
    'QueryExpansionOptions',
    'add_acronym',
    'add_synonyms',
    'expand_acronym',
    'expand_query',
    'get_synonyms',
]
