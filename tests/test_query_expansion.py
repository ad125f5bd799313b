"""
Tests for synonym and acronym query expansion.
"""

from semantic_search.query_expansion import (
    QueryExpander,
    QueryExpansionOptions,
    add_acronym,
    expand_acronym,
    expand_query,
    get_synonyms,
)


class TestQueryExpander:

    def test_acronym_and_synonyms(self):
        expanded = QueryExpander().expand("CC payment")

        assert expanded.original == "CC payment"
        assert expanded.expanded_terms == ["credit card", "charge", "transaction"]
        assert expanded.expanded_query == "CC payment credit card charge transaction"

    def test_terms_already_present_are_skipped(self):
        expanded = QueryExpander().expand("payment charge")
        assert expanded.expanded_terms == ["transaction"]

    def test_options(self):
        options = QueryExpansionOptions(expand_acronyms=False, max_synonyms_per_term=1)
        expanded = QueryExpander().expand("CC payment", options)
        assert expanded.expanded_terms == ["charge"]

    def test_nothing_to_expand(self):
        expanded = QueryExpander().expand("northwind furniture")
        assert expanded.expanded_terms == []
        assert expanded.expanded_query == "northwind furniture"

    def test_custom_tables(self):
        expander = QueryExpander(synonyms={}, acronyms={})
        expander.add_synonyms("Rent", ["lease", "LEASE", "rent", "tenancy"])
        expander.add_acronym("HOA", "Homeowners Association")

        assert expander.get_synonyms("rent") == ["lease", "tenancy"]
        assert expander.expand_acronym("hoa") == "homeowners association"
        assert expander.expand("hoa rent").expanded_terms == ["homeowners association", "lease", "tenancy"]

    def test_instances_do_not_share_tables(self):
        first = QueryExpander()
        first.add_synonyms("invoice", ["voucher"])
        assert "voucher" not in QueryExpander().get_synonyms("invoice")


class TestModuleFunctions:

    def test_default_tables(self):
        assert get_synonyms("Invoice") == ["bill", "receipt", "statement"]
        assert expand_acronym("APR") == "annual percentage rate"
        assert expand_acronym("zzz") is None

    def test_registered_acronym_is_used(self):
        add_acronym("nwf", "northwind furniture")
        assert "northwind furniture" in expand_query("nwf order").expanded_terms
