"""
Service Interfaces
==================

Abstractions the engine depends on, so providers can be injected
and swapped in tests.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List


# Any async callable mapping text to a dense vector.
EmbeddingFunction = Callable[[str], Awaitable[List[float]]]


class EmbeddingInterface(ABC):
    """
    Abstract interface for embedding providers.
    Implementations: OllamaEmbedding, LocalTransformerEmbedding, CachedEmbedding.

    Instances are callable, so any provider can be passed wherever an
    ``EmbeddingFunction`` is expected.
    """

    model: str = "unknown"

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for text"""
        pass

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts, preserving order"""
        return [await self.embed_text(text) for text in texts]

    async def __call__(self, text: str) -> List[float]:
        return await self.embed_text(text)
