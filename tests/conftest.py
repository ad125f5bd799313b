"""
Shared fixtures: embedding doubles and small knowledge bases.
"""

import pytest

from knowledge_graph.graph_builder import create_knowledge_graph
from tests.embedding_doubles import FailingEmbedding, KeywordEmbedding


@pytest.fixture
def keyword_embedding():
    return KeywordEmbedding()


@pytest.fixture
def failing_embedding():
    return FailingEmbedding()


@pytest.fixture
def transaction_entries():
    return [
        {"id": 1, "title": "Furniture", "content": "Card payment of $750.00 at Northwind Furniture."},
        {"id": 2, "title": "Groceries", "content": "Grocery purchase of $100.00 at Fresh Market."},
    ]


@pytest.fixture
def transaction_graph(transaction_entries):
    return create_knowledge_graph(transaction_entries)


@pytest.fixture
def long_text():
    return " ".join(f"Sentence {i} talks about the quarterly budget review." for i in range(10))
