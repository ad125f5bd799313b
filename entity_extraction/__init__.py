"""Symbolic extraction: typed entities and weighted keywords"""

from .keyword_extractor import STOPWORDS, extract_keywords, extract_phrases, tokenize
from .entity_extractor import (
    ENTITY_PATTERNS,
    EntityExtractionResult,
    EntityPattern,
    EntityPosition,
    EntitySummary,
    EntityType,
    ExtractedEntity,
    RuleBasedEntityExtractor,
    entity_match_value,
    extract_entities,
    find_entities,
)

__all__ = [
    # Keywords
    "STOPWORDS",
    "extract_keywords",
    "extract_phrases",
    "tokenize",
    # Entities
    "ENTITY_PATTERNS",
    "EntityExtractionResult",
    "EntityPattern",
    "EntityPosition",
    "EntitySummary",
    "EntityType",
    "ExtractedEntity",
    "RuleBasedEntityExtractor",
    "entity_match_value",
    "extract_entities",
    "find_entities",
]
