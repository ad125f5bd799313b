"""Core module - logging, errors, configuration and embedding providers"""

from .service_interfaces import EmbeddingInterface, EmbeddingFunction
from .logging_config import Logger, setup_logger, set_log_level, log_performance
from .validation_and_errors import (
    DataValidator,
    RetryStrategy,
    PipelineException,
    ValidationException,
    ExtractionException,
    ChunkingException,
    GraphBuildException,
    EmbeddingException,
)
from .security_config import EngineConfig, Credentials, SecretsMask
from .embedding_service import (
    OllamaEmbedding,
    LocalTransformerEmbedding,
    CachedEmbedding,
    cosine_similarity,
    create_embedding_service,
)
from .text_processor import TextProcessor, normalize_whitespace, split_sentences

__all__ = [
    # Interfaces
    "EmbeddingInterface",
    "EmbeddingFunction",
    # Logging
    "Logger",
    "setup_logger",
    "set_log_level",
    "log_performance",
    # Validation & Errors
    "DataValidator",
    "RetryStrategy",
    "PipelineException",
    "ValidationException",
    "ExtractionException",
    "ChunkingException",
    "GraphBuildException",
    "EmbeddingException",
    # Config
    "EngineConfig",
    "Credentials",
    "SecretsMask",
    # Embeddings
    "OllamaEmbedding",
    "LocalTransformerEmbedding",
    "CachedEmbedding",
    "cosine_similarity",
    "create_embedding_service",
    # Text
    "TextProcessor",
    "normalize_whitespace",
    "split_sentences",
]
