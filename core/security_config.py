"""
Security and Configuration Management
======================================

Loads engine settings and provider credentials from the environment
(optionally seeded from a .env file) and masks secrets before they are
logged.
"""

import os
import re
from typing import Optional, Dict, Any
from dataclasses import dataclass, field, asdict

from dotenv import load_dotenv

from core.logging_config import Logger


logger = Logger(__name__)

ENV_PREFIX = "NEXUS_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Credentials:
    """Secure credentials holder"""
    embedding_api_key: Optional[str] = None
    custom_secrets: Dict[str, str] = field(default_factory=dict)


@dataclass
class EngineConfig:
    """Runtime settings for embeddings, chunking and search"""

    # Embedding provider
    embedding_backend: str = "ollama"
    embedding_endpoint: str = "http://localhost:11434"
    embedding_model: str = "mxbai-embed-large:latest"
    embedding_timeout: float = 30.0
    embedding_retries: int = 3
    cache_embeddings: bool = True

    # Chunking defaults
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    # Search defaults
    top_k: int = 5
    min_score: float = 0.3
    semantic_weight: float = 0.5
    entity_weight: float = 0.25
    keyword_weight: float = 0.15
    graph_weight: float = 0.1
    temporal_decay: bool = True
    symbolic_fallback: bool = False

    log_level: str = "INFO"
    credentials: Credentials = field(default_factory=Credentials)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        """
        Build a configuration from NEXUS_* environment variables.

        Args:
            env_file: Optional path to a .env file loaded first
                (existing environment variables take precedence)
        """
        if env_file:
            if os.path.exists(env_file):
                load_dotenv(env_file, override=False)
                logger.info(f"Loaded configuration from {env_file}")
            else:
                logger.warning(f"Env file {env_file} not found, using environment only")

        defaults = cls()
        config = cls(
            embedding_backend=_env("EMBEDDING_BACKEND", defaults.embedding_backend),
            embedding_endpoint=_env("EMBEDDING_ENDPOINT", defaults.embedding_endpoint),
            embedding_model=_env("EMBEDDING_MODEL", defaults.embedding_model),
            embedding_timeout=_env_float("EMBEDDING_TIMEOUT", defaults.embedding_timeout),
            embedding_retries=_env_int("EMBEDDING_RETRIES", defaults.embedding_retries),
            cache_embeddings=_env_bool("CACHE_EMBEDDINGS", defaults.cache_embeddings),
            chunk_size=_env_int("CHUNK_SIZE", defaults.chunk_size),
            chunk_overlap=_env_int("CHUNK_OVERLAP", defaults.chunk_overlap),
            min_chunk_size=_env_int("MIN_CHUNK_SIZE", defaults.min_chunk_size),
            top_k=_env_int("TOP_K", defaults.top_k),
            min_score=_env_float("MIN_SCORE", defaults.min_score),
            semantic_weight=_env_float("SEMANTIC_WEIGHT", defaults.semantic_weight),
            entity_weight=_env_float("ENTITY_WEIGHT", defaults.entity_weight),
            keyword_weight=_env_float("KEYWORD_WEIGHT", defaults.keyword_weight),
            graph_weight=_env_float("GRAPH_WEIGHT", defaults.graph_weight),
            temporal_decay=_env_bool("TEMPORAL_DECAY", defaults.temporal_decay),
            symbolic_fallback=_env_bool("SYMBOLIC_FALLBACK", defaults.symbolic_fallback),
            log_level=(_env("LOG_LEVEL", defaults.log_level) or "INFO").upper(),
            credentials=Credentials(embedding_api_key=_env("EMBEDDING_API_KEY")),
        )
        logger.debug(f"Engine configuration: {config.masked()}")
        return config

    def chunk_options(self):
        """Chunk options seeded from this configuration"""
        from chunking.document_chunker import ChunkOptions

        return ChunkOptions(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )

    def search_options(self):
        """Hybrid-search options seeded from this configuration"""
        from semantic_search.hybrid_search import HybridSearchOptions

        return HybridSearchOptions(
            top_k=self.top_k,
            semantic_weight=self.semantic_weight,
            entity_weight=self.entity_weight,
            keyword_weight=self.keyword_weight,
            graph_weight=self.graph_weight,
            min_score=self.min_score,
            temporal_decay=self.temporal_decay,
            symbolic_fallback=self.symbolic_fallback,
        )

    def masked(self) -> Dict[str, Any]:
        """Configuration as a dict with secrets masked, safe for logs"""
        return SecretsMask.mask_dict(asdict(self))


class SecretsMask:
    """Utility for masking secrets in logs"""

    SENSITIVE_KEYS = [
        "api_key", "password", "secret", "token", "authorization",
    ]
    MASK = "***MASKED***"

    @classmethod
    def mask_dict(cls, data: Dict[str, Any], depth: int = 0) -> Dict[str, Any]:
        """Recursively mask sensitive values in a dictionary"""
        if depth > 5:
            return data

        masked: Dict[str, Any] = {}
        for key, value in data.items():
            if cls._is_sensitive_key(key):
                masked[key] = cls.MASK if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value, depth + 1)
            else:
                masked[key] = value
        return masked

    @classmethod
    def _is_sensitive_key(cls, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in cls.SENSITIVE_KEYS)

    @classmethod
    def mask_string(cls, text: str) -> str:
        """Mask API keys and bearer tokens embedded in free text"""
        masked = re.sub(r"(api.?key[=:\s]+)['\"]?[^'\"\s]+['\"]?", r"\1" + cls.MASK, text, flags=re.IGNORECASE)
        return re.sub(r"Bearer\s+\S+", "Bearer " + cls.MASK, masked)
