"""
Embedding Generation Service
=============================

Embedding providers consumed by semantic chunking and hybrid search.
Supports: Ollama HTTP API, local sentence-transformers, and a caching
wrapper around either.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
import numpy as np

from core.service_interfaces import EmbeddingInterface
from core.logging_config import Logger, log_performance
from core.validation_and_errors import EmbeddingException, RetryStrategy
from core.security_config import EngineConfig, SecretsMask


logger = Logger(__name__)


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity; 0.0 for missing vectors, dimension mismatch or zero norm."""
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


class OllamaEmbedding(EmbeddingInterface):
    """Embeddings from an Ollama server (``POST /api/embeddings``)"""

    def __init__(
        self,
        model: str = "mxbai-embed-large:latest",
        base_url: str = "http://localhost:11434",
        timeout: float = 30.0,
        max_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        # Sent as a bearer token for Ollama servers behind an auth proxy
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._retry = RetryStrategy(
            max_attempts=max_attempts,
            initial_delay=0.5,
            exceptions=(httpx.TransportError,),
        )
        logger.info(f"Ollama embedding service initialized with {model} at {self.base_url}")

    async def _post(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            f"{self.base_url}/api/embeddings",
            json={"model": self.model, "prompt": text},
            headers=self._headers,
            timeout=self.timeout,
        )

    @log_performance
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for single text"""
        if not text or not text.strip():
            raise EmbeddingException("Cannot embed empty text")

        try:
            if self._client is not None:
                response = await self._retry.execute_async(self._post, self._client, text)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._retry.execute_async(self._post, client, text)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmbeddingException(
                f"Ollama embedding request failed: {SecretsMask.mask_string(str(e))}"
            ) from e

        embedding = response.json().get("embedding")
        if not embedding:
            raise EmbeddingException(f"Ollama returned no embedding for model {self.model}")
        return [float(x) for x in embedding]

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()


class LocalTransformerEmbedding(EmbeddingInterface):
    """Local transformer-based embeddings using sentence-transformers"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model = model_name
        self._encoder = None

    def _load(self):
        if self._encoder is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbeddingException(
                    "sentence-transformers is not installed; install the 'local' extra"
                ) from e
            self._encoder = SentenceTransformer(self.model)
            logger.info(f"Local transformer embedding initialized with {self.model}")
        return self._encoder

    @log_performance
    async def embed_text(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingException("Cannot embed empty text")
        encoder = self._load()
        # encode() is CPU bound; keep the event loop free
        vector = await asyncio.to_thread(encoder.encode, text.strip(), convert_to_numpy=True)
        return vector.tolist()

    @log_performance
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        encoder = self._load()
        vectors = await asyncio.to_thread(encoder.encode, list(texts), convert_to_numpy=True)
        return [v.tolist() for v in vectors]


class CachedEmbedding(EmbeddingInterface):
    """
    Memoizes another provider's vectors per (model, text).

    The cache is unbounded; call ``clear()`` when the model changes or
    memory matters.
    """

    def __init__(self, inner: EmbeddingInterface):
        self.inner = inner
        self.model = inner.model
        self._cache: Dict[Tuple[str, str], List[float]] = {}
        self.hits = 0
        self.misses = 0

    async def embed_text(self, text: str) -> List[float]:
        key = (self.inner.model, text)
        cached = self._cache.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        vector = await self.inner.embed_text(text)
        self._cache[key] = vector
        return vector

    def clear(self):
        """Drop every cached vector"""
        logger.debug(f"Clearing embedding cache ({len(self._cache)} vectors)")
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


def create_embedding_service(config: EngineConfig) -> EmbeddingInterface:
    """Build the embedding provider described by *config*"""
    backend = config.embedding_backend.lower()
    if backend == "ollama":
        service: EmbeddingInterface = OllamaEmbedding(
            model=config.embedding_model,
            base_url=config.embedding_endpoint,
            timeout=config.embedding_timeout,
            max_attempts=config.embedding_retries,
            api_key=config.credentials.embedding_api_key,
        )
    elif backend == "local":
        service = LocalTransformerEmbedding(config.embedding_model)
    else:
        raise EmbeddingException(f"Unknown embedding backend: {config.embedding_backend}")

    return CachedEmbedding(service) if config.cache_embeddings else service
