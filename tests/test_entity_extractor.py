"""
Tests for pattern-based entity extraction and keyword extraction.
"""

from datetime import datetime

import pytest

from core.validation_and_errors import ExtractionException
from entity_extraction.entity_extractor import (
    CONTEXT_WINDOW,
    EntityType,
    RuleBasedEntityExtractor,
    entity_match_value,
    extract_entities,
    find_entities,
)
from entity_extraction.keyword_extractor import extract_keywords, extract_phrases, tokenize


def _by_type(text, entity_type):
    return [e for e in find_entities(text) if e.type is entity_type]


class TestEntityExtraction:
    """Typed spans found by the pattern table"""

    def test_money_and_date(self):
        result = extract_entities("Paid $1,234.56 on 2024-03-15")

        assert sorted(e.type.value for e in result.entities) == ["date", "money"]
        money = _by_type("Paid $1,234.56 on 2024-03-15", EntityType.MONEY)[0]
        assert money.value == "$1,234.56"
        assert money.normalized == pytest.approx(1234.56)
        date = _by_type("Paid $1,234.56 on 2024-03-15", EntityType.DATE)[0]
        assert date.value == "2024-03-15"
        assert date.normalized == datetime(2024, 3, 15)

    def test_spans_never_overlap(self):
        text = "On 2024-03-15 a transfer of $1,234.56 (19.99%) was sent; call 555-123-4567."
        entities = sorted(find_entities(text), key=lambda e: e.position.start)
        for first, second in zip(entities, entities[1:]):
            assert first.position.end <= second.position.start

    def test_invalid_date_keeps_type_without_value(self):
        dates = _by_type("Scheduled for 2024-13-45.", EntityType.DATE)
        assert len(dates) == 1
        assert dates[0].normalized is None

    def test_written_and_us_dates(self):
        assert _by_type("Issued March 20, 2024.", EntityType.DATE)[0].normalized == datetime(2024, 3, 20)
        assert _by_type("Period 03/01/2024 only.", EntityType.DATE)[0].normalized == datetime(2024, 3, 1)

    def test_time(self):
        times = _by_type("Meeting at 10:30 AM sharp", EntityType.TIME)
        assert [t.value for t in times] == ["10:30 AM"]

    def test_percentage(self):
        percentages = _by_type("Costs rose 8% last quarter", EntityType.PERCENTAGE)
        assert percentages[0].normalized == pytest.approx(8.0)

    def test_contact_details(self):
        text = "Email billing@acme-consulting.com or visit https://intranet.example.com/migration today"
        assert _by_type(text, EntityType.EMAIL)[0].value == "billing@acme-consulting.com"
        assert _by_type(text, EntityType.URL)[0].value.startswith("https://intranet.example.com")

    def test_duration_normalizes_to_seconds(self):
        durations = _by_type("Finish within 6 weeks", EntityType.DURATION)
        assert durations[0].value == "6 weeks"
        assert durations[0].normalized == pytest.approx(6 * 7 * 86400)

    def test_ordinal(self):
        assert _by_type("The 3rd milestone", EntityType.ORDINAL)[0].normalized == 3

    def test_card_and_account_fragments(self):
        text = "Paid with (CARD 8455) from savings account xxxx55210."
        assert _by_type(text, EntityType.CARD)[0].value == "8455"
        assert _by_type(text, EntityType.ACCOUNT)[0].value == "55210"

    def test_confidence_and_context(self):
        text = "x" * 80 + " Paid $750.00 today " + "y" * 80
        money = _by_type(text, EntityType.MONEY)[0]
        assert money.confidence == 0.9
        assert "$750.00" in money.context
        assert len(money.context) <= len(money.value) + 2 * CONTEXT_WINDOW

    def test_summary_flags(self):
        result = extract_entities("Paid $20.00 on 2024-01-02, receipt sent to a@b.com")
        assert result.summary.total_entities == len(result.entities)
        assert result.summary.has_temporal_info
        assert result.summary.has_monetary_info
        assert result.summary.has_contact_info
        assert result.summary.by_type["money"] == 1

    def test_plain_text_has_no_entities(self):
        result = extract_entities("Nothing to see here")
        assert result.entities == []
        assert not result.summary.has_temporal_info

    def test_non_text_input_rejected(self):
        with pytest.raises(ExtractionException):
            RuleBasedEntityExtractor().extract(1234)

    def test_extraction_is_idempotent(self):
        text = (
            "On 2024-03-15 Jane Doe paid $1,234.56 (19.99%) to ACME Corp; "
            "call 555-123-4567 or mail billing@acme.example within 6 weeks."
        )
        first = extract_entities(text)
        second = extract_entities(text)

        assert first.entities
        assert first.entities == second.entities
        assert first.keywords == second.keywords
        assert [(e.type, e.value, e.normalized) for e in first.entities] == [
            (e.type, e.value, e.normalized) for e in second.entities
        ]


class TestMatchValue:
    """Canonical values used to compare entities across nodes"""

    def test_integral_amount_drops_fraction(self):
        money = _by_type("Total $750.00", EntityType.MONEY)[0]
        assert entity_match_value(money) == "750"

    def test_date_uses_iso_day(self):
        date = _by_type("Due March 5, 2024", EntityType.DATE)[0]
        assert entity_match_value(date) == "2024-03-05"

    def test_raw_value_lowercased(self):
        email = _by_type("Write to Support@Example.com", EntityType.EMAIL)[0]
        assert entity_match_value(email) == "support@example.com"


class TestKeywords:
    """Keyword and phrase extraction"""

    def test_tokenize_filters_stopwords_digits_and_short_words(self):
        assert tokenize("The quick brown fox, 2024 is here") == ["quick", "brown", "fox"]

    def test_frequency_ranks_first(self):
        assert extract_keywords("invoice payment invoice") == ["invoice", "payment"]

    def test_max_keywords(self):
        text = "alpha bravo charlie delta echo foxtrot"
        assert len(extract_keywords(text, max_keywords=3)) == 3

    def test_repeated_phrases(self):
        assert extract_phrases("credit card payment. credit card fee.") == ["credit card"]

    def test_single_occurrence_is_not_a_phrase(self):
        assert extract_phrases("one two three") == []
