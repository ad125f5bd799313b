# Query Expansion
# Widens a query with synonyms and acronym expansions before searching,
# so "CC payment" also reaches chunks that say "credit card charge".

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from core.logging_config import Logger
from entity_extraction.keyword_extractor import STOPWORDS


logger = Logger(__name__)

DEFAULT_SYNONYMS: Dict[str, List[str]] = {
    "payment": ["charge", "transaction", "purchase"],
    "purchase": ["buy", "order", "payment"],
    "transaction": ["payment", "charge", "transfer"],
    "invoice": ["bill", "receipt", "statement"],
    "bill": ["invoice", "statement"],
    "cost": ["price", "amount", "fee"],
    "price": ["cost", "amount"],
    "refund": ["reimbursement", "return", "credit"],
    "salary": ["income", "pay", "wages"],
    "meeting": ["appointment", "call", "session"],
    "deadline": ["due date", "cutoff"],
    "contract": ["agreement", "deal"],
    "customer": ["client", "buyer"],
    "error": ["bug", "issue", "failure"],
    "document": ["file", "record"],
}

DEFAULT_ACRONYMS: Dict[str, str] = {
    "cc": "credit card",
    "atm": "automated teller machine",
    "eft": "electronic funds transfer",
    "ach": "automated clearing house",
    "apr": "annual percentage rate",
    "roi": "return on investment",
    "eta": "estimated time of arrival",
    "faq": "frequently asked questions",
    "api": "application programming interface",
    "kpi": "key performance indicator",
    "q1": "first quarter",
    "q2": "second quarter",
    "q3": "third quarter",
    "q4": "fourth quarter",
}

_TOKEN = re.compile(r"[\w-]+")


@dataclass
class QueryExpansionOptions:
    max_synonyms_per_term: int = 2
    expand_acronyms: bool = True
    include_synonyms: bool = True


@dataclass
class ExpandedQuery:
    original: str
    expanded_terms: List[str] = field(default_factory=list)
    expanded_query: str = ""


class QueryExpander:
    """Synonym and acronym tables with query expansion on top"""

    def __init__(
        self,
        synonyms: Optional[Dict[str, List[str]]] = None,
        acronyms: Optional[Dict[str, str]] = None,
    ):
        self.synonyms = {k: list(v) for k, v in (synonyms if synonyms is not None else DEFAULT_SYNONYMS).items()}
        self.acronyms = dict(acronyms if acronyms is not None else DEFAULT_ACRONYMS)

    def get_synonyms(self, term: str) -> List[str]:
        return list(self.synonyms.get(term.lower(), []))

    def expand_acronym(self, term: str) -> Optional[str]:
        return self.acronyms.get(term.lower())

    def add_synonyms(self, term: str, synonyms: Iterable[str]):
        known = self.synonyms.setdefault(term.lower(), [])
        for synonym in synonyms:
            synonym = synonym.lower()
            if synonym != term.lower() and synonym not in known:
                known.append(synonym)

    def add_acronym(self, acronym: str, expansion: str):
        self.acronyms[acronym.lower()] = expansion.lower()

    def expand(self, query: str, options: Optional[QueryExpansionOptions] = None) -> ExpandedQuery:
        """
        Append acronym expansions and up to ``max_synonyms_per_term``
        synonyms per query term. Terms already in the query are skipped.
        """
        opts = options or QueryExpansionOptions()
        tokens = [t.lower() for t in _TOKEN.findall(query)]
        present = set(tokens)
        added: List[str] = []

        def _add(term: str):
            if term not in present and term not in added:
                added.append(term)

        for token in tokens:
            if token in STOPWORDS:
                continue
            if opts.expand_acronyms:
                expansion = self.expand_acronym(token)
                if expansion:
                    _add(expansion)
            if opts.include_synonyms:
                for synonym in self.get_synonyms(token)[:opts.max_synonyms_per_term]:
                    _add(synonym)

        expanded_query = " ".join([query] + added) if added else query
        if added:
            logger.debug(f"Expanded query with {len(added)} terms")
        return ExpandedQuery(original=query, expanded_terms=added, expanded_query=expanded_query)


_default_expander = QueryExpander()


def get_synonyms(term: str) -> List[str]:
    return _default_expander.get_synonyms(term)


def expand_acronym(term: str) -> Optional[str]:
    return _default_expander.expand_acronym(term)


def add_synonyms(term: str, synonyms: Iterable[str]):
    _default_expander.add_synonyms(term, synonyms)


def add_acronym(acronym: str, expansion: str):
    _default_expander.add_acronym(acronym, expansion)


def expand_query(query: str, options: Optional[QueryExpansionOptions] = None) -> ExpandedQuery:
    return _default_expander.expand(query, options)
