"""Pipeline orchestrators and main entry points"""

from .knowledge_pipeline import (
    KnowledgeBasePipeline,
    ProcessedDocument,
    QueryResponse,
)

__all__ = [
    "KnowledgeBasePipeline",
    "ProcessedDocument",
    "QueryResponse",
]
