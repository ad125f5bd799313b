# Entity Extraction
# Pattern-based recognition of typed spans (dates, money, contact details,
# card/account fragments, ...) in free text.

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Pattern, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from core.validation_and_errors import ExtractionException
from entity_extraction.keyword_extractor import extract_keywords


NormalizedValue = Union[datetime, int, float, str]

CONTEXT_WINDOW = 30
PATTERN_CONFIDENCE = 0.9


class EntityType(str, Enum):
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    MONEY = "money"
    PERCENTAGE = "percentage"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    NUMBER = "number"
    CARD = "card"
    ACCOUNT = "account"
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    DURATION = "duration"
    ORDINAL = "ordinal"
    KEYWORD = "keyword"


TEMPORAL_TYPES = frozenset({EntityType.DATE, EntityType.TIME, EntityType.DATETIME})
MONETARY_TYPES = frozenset({EntityType.MONEY, EntityType.PERCENTAGE})
CONTACT_TYPES = frozenset({EntityType.EMAIL, EntityType.PHONE, EntityType.URL})


class EntityPosition(BaseModel):
    """Half-open character span [start, end) in the source text"""
    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class ExtractedEntity(BaseModel):
    """Typed span recognized by a pattern"""
    model_config = ConfigDict(frozen=True)

    type: EntityType = Field(..., description="Entity type tag")
    value: str = Field(..., description="Matched text")
    normalized: Optional[NormalizedValue] = Field(
        default=None, description="Parsed value (datetime, number or canonical string)"
    )
    confidence: float = Field(default=PATTERN_CONFIDENCE, ge=0.0, le=1.0)
    position: EntityPosition
    context: str = Field(default="", description="Up to 30 characters either side of the match")


class EntitySummary(BaseModel):
    total_entities: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    has_temporal_info: bool = False
    has_monetary_info: bool = False
    has_contact_info: bool = False


class EntityExtractionResult(BaseModel):
    """Result of entity extraction"""
    entities: List[ExtractedEntity] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    summary: EntitySummary = Field(default_factory=EntitySummary)


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_DURATION_SECONDS = {
    "sec": 1, "second": 1,
    "min": 60, "minute": 60,
    "hr": 3600, "hour": 3600,
    "day": 86400,
    "week": 7 * 86400,
    "month": 30 * 86400,
    "yr": 365 * 86400, "year": 365 * 86400,
}


def _full_year(year: str) -> int:
    return int("20" + year) if len(year) == 2 else int(year)


def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _normalize_iso_date(value: str) -> Optional[datetime]:
    year, month, day = value.split("-")
    return _safe_date(int(year), int(month), int(day))


def _normalize_us_date(value: str) -> Optional[datetime]:
    month, day, year = value.split("/")
    return _safe_date(_full_year(year), int(month), int(day))


def _normalize_eu_date(value: str) -> Optional[datetime]:
    day, month, year = value.split(".")
    return _safe_date(_full_year(year), int(month), int(day))


def _normalize_written_date(value: str) -> Optional[datetime]:
    match = re.match(r"([A-Za-z]+)\s+(\d{1,2})\D*?(\d{4})$", value)
    if not match:
        return None
    month = _MONTHS.get(match.group(1)[:3].lower())
    if month is None:
        return None
    return _safe_date(int(match.group(3)), month, int(match.group(2)))


def _to_float(value: str) -> Optional[float]:
    digits = re.sub(r"[^\d.]", "", value)
    try:
        return float(digits)
    except ValueError:
        return None


def _normalize_phone(value: str) -> str:
    return re.sub(r"[^\d+]", "", value)


def _normalize_ordinal(value: str) -> int:
    return int(re.sub(r"\D", "", value))


def _normalize_duration(value: str) -> Optional[float]:
    match = re.match(r"(\d+)\s*([A-Za-z]+)", value)
    if not match:
        return None
    unit = match.group(2).lower().rstrip("s")
    seconds = _DURATION_SECONDS.get(unit)
    return float(int(match.group(1)) * seconds) if seconds else None


def _identity(value: str) -> str:
    return value


# ---------------------------------------------------------------------------
# Pattern table (declaration order is the dedup priority)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntityPattern:
    name: str
    regex: Pattern[str]
    type: EntityType
    normalize: Optional[Callable[[str], Optional[NormalizedValue]]] = None
    # 1 = first capture group, 0 = whole match
    value_group: int = 1


_MONTH_NAMES = (
    r"Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?|"
    r"Aug(?:ust)?|Sep(?:tember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?"
)

ENTITY_PATTERNS: Tuple[EntityPattern, ...] = (
    # Dates
    EntityPattern("date_iso", re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"), EntityType.DATE, _normalize_iso_date),
    EntityPattern("date_us", re.compile(r"\b(\d{1,2}/\d{1,2}/\d{2,4})\b"), EntityType.DATE, _normalize_us_date),
    EntityPattern("date_eu", re.compile(r"\b(\d{1,2}\.\d{1,2}\.\d{2,4})\b"), EntityType.DATE, _normalize_eu_date),
    EntityPattern(
        "date_written",
        re.compile(r"\b((?:" + _MONTH_NAMES + r")\s+\d{1,2}(?:st|nd|rd|th)?,?\s*\d{4})\b", re.IGNORECASE),
        EntityType.DATE,
        _normalize_written_date,
    ),
    # Times
    EntityPattern("time_12h", re.compile(r"\b(\d{1,2}:\d{2}(?::\d{2})?\s*(?:AM|PM|am|pm))\b"), EntityType.TIME),
    EntityPattern("time_24h", re.compile(r"\b([0-2]?\d:[0-5]\d(?::[0-5]\d)?)\b"), EntityType.TIME),
    # Money; symbol-prefixed amounts keep the symbol in the value
    EntityPattern("money_usd", re.compile(r"\$\s?([\d,]+(?:\.\d{2})?)\b"), EntityType.MONEY, _to_float, 0),
    EntityPattern("money_eur", re.compile(r"€\s?([\d,]+(?:\.\d{2})?)\b"), EntityType.MONEY, _to_float, 0),
    EntityPattern("money_gbp", re.compile(r"£\s?([\d,]+(?:\.\d{2})?)\b"), EntityType.MONEY, _to_float, 0),
    EntityPattern(
        "money_generic",
        re.compile(r"\b([\d,]+(?:\.\d{2})?)\s*(?:dollars?|USD|EUR|GBP|euros?|pounds?)\b", re.IGNORECASE),
        EntityType.MONEY,
        _to_float,
    ),
    # Over-approximates: any "x,xxx.xx" decimal is read as an amount
    EntityPattern("money_decimal", re.compile(r"\b(\d{1,3}(?:,\d{3})*\.\d{2})\b"), EntityType.MONEY, _to_float),
    EntityPattern("percentage", re.compile(r"\b(\d+(?:\.\d+)?)\s*%"), EntityType.PERCENTAGE, _to_float),
    # Contact
    EntityPattern(
        "email", re.compile(r"\b([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b"), EntityType.EMAIL
    ),
    EntityPattern(
        "phone",
        re.compile(r"\b(\+?1?[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4})\b"),
        EntityType.PHONE,
        _normalize_phone,
    ),
    EntityPattern("url", re.compile(r"\b(https?://[^\s<>\"{}|\\^`\[\]]+)\b"), EntityType.URL),
    # Numbers
    EntityPattern("large_number", re.compile(r"\b(\d{1,3}(?:,\d{3})+(?:\.\d+)?)\b"), EntityType.NUMBER, _to_float),
    EntityPattern("decimal", re.compile(r"\b(\d+\.\d+)\b"), EntityType.NUMBER, _to_float),
    EntityPattern(
        "duration",
        re.compile(
            r"\b(\d+)\s*(seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?|years?|yrs?)\b",
            re.IGNORECASE,
        ),
        EntityType.DURATION,
        _normalize_duration,
        0,
    ),
    EntityPattern("ordinal", re.compile(r"\b(\d+(?:st|nd|rd|th))\b", re.IGNORECASE), EntityType.ORDINAL, _normalize_ordinal),
    # Card / account fragments
    EntityPattern(
        "card_last4",
        re.compile(r"\b(?:card|acct|account|ending(?:\s+in)?)\s*[#:]?\s*(\d{4})\b", re.IGNORECASE),
        EntityType.CARD,
        _identity,
    ),
    EntityPattern("card_number4", re.compile(r"\(?\s*(?:CARD|Card|card)\s+(\d{4})\s*\)?"), EntityType.CARD, _identity),
    EntityPattern(
        "account_partial",
        re.compile(r"\b(?:x{2,}|[*]{2,})(\d{4,6})\b", re.IGNORECASE),
        EntityType.ACCOUNT,
        _identity,
    ),
)


def entity_match_value(entity: ExtractedEntity) -> str:
    """
    Canonical lowercase string used to compare and index entities.

    The normalized value wins over the raw text; integral floats drop
    their fraction so "$750.00" and "750 dollars" compare equal.
    """
    normalized = entity.normalized
    if normalized is None or normalized == "":
        return entity.value.lower()
    if isinstance(normalized, datetime):
        return normalized.date().isoformat()
    if isinstance(normalized, float) and normalized.is_integer():
        return str(int(normalized))
    return str(normalized).lower()


class RuleBasedEntityExtractor:
    """Extract entities with an ordered pattern table"""

    def __init__(self, patterns: Tuple[EntityPattern, ...] = ENTITY_PATTERNS, max_keywords: int = 20):
        self.patterns = patterns
        self.max_keywords = max_keywords

    def find_entities(self, text: str) -> List[ExtractedEntity]:
        """
        Run every pattern in declared order.

        A match overlapping an already accepted span is discarded, so the
        first declared pattern owns a span.
        """
        entities: List[ExtractedEntity] = []
        accepted: List[Tuple[int, int]] = []

        for spec in self.patterns:
            for match in spec.regex.finditer(text):
                start, end = match.span()
                if start == end or any(start < a_end and a_start < end for a_start, a_end in accepted):
                    continue
                accepted.append((start, end))

                value = (match.group(spec.value_group) or match.group(0)).strip()
                entities.append(
                    ExtractedEntity(
                        type=spec.type,
                        value=value,
                        normalized=spec.normalize(value) if spec.normalize else None,
                        position=EntityPosition(start=start, end=end),
                        context=text[max(0, start - CONTEXT_WINDOW):min(len(text), end + CONTEXT_WINDOW)].strip(),
                    )
                )
        return entities

    @staticmethod
    def summarize(entities: List[ExtractedEntity]) -> EntitySummary:
        by_type: Dict[str, int] = {}
        for entity in entities:
            by_type[entity.type.value] = by_type.get(entity.type.value, 0) + 1
        present = {entity.type for entity in entities}
        return EntitySummary(
            total_entities=len(entities),
            by_type=by_type,
            has_temporal_info=bool(present & TEMPORAL_TYPES),
            has_monetary_info=bool(present & MONETARY_TYPES),
            has_contact_info=bool(present & CONTACT_TYPES),
        )

    def extract(self, text: str) -> EntityExtractionResult:
        if not isinstance(text, str):
            raise ExtractionException(f"Expected text, got {type(text).__name__}")
        entities = self.find_entities(text)
        return EntityExtractionResult(
            entities=entities,
            keywords=extract_keywords(text, self.max_keywords),
            summary=self.summarize(entities),
        )


_default_extractor = RuleBasedEntityExtractor()


def extract_entities(text: str) -> EntityExtractionResult:
    """Extract entities, keywords and a per-type summary from *text*."""
    return _default_extractor.extract(text)


def find_entities(text: str) -> List[ExtractedEntity]:
    """Entities only, without keywords or summary."""
    return _default_extractor.find_entities(text)
