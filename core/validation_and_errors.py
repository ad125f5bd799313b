"""
Data Validation and Error Handling
===================================

Exception taxonomy, option validation and retry policy for the
retrieval engine.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import time

from pydantic import ValidationError

from core.logging_config import Logger


logger = Logger(__name__)


# Custom exceptions
class PipelineException(Exception):
    """Base exception for engine operations"""
    pass


class ValidationException(PipelineException):
    """Raised when options, entries or vectors fail validation"""
    pass


class ExtractionException(PipelineException):
    """Raised when extraction receives input it cannot process"""
    pass


class ChunkingException(PipelineException):
    """Raised when a chunking strategy cannot be applied"""
    pass


class GraphBuildException(PipelineException):
    """Raised when entries violate the graph builder's data contract"""
    pass


class EmbeddingException(PipelineException):
    """Raised when an embedding provider fails to return a vector"""
    pass


class RetryStrategy:
    """Configurable retry strategy with exponential backoff"""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        exceptions: tuple = (Exception,),
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.exceptions = exceptions

    def _next_delay(self, delay: float) -> float:
        return min(delay * self.backoff_factor, self.max_delay)

    def execute(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function with retry logic"""
        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.exceptions as e:
                if attempt == self.max_attempts:
                    logger.error(f"All {self.max_attempts} attempts failed")
                    raise
                logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay}s...")
                time.sleep(delay)
                delay = self._next_delay(delay)
        raise RuntimeError("RetryStrategy configured with max_attempts < 1")

    async def execute_async(
        self, func: Callable[..., Awaitable[Any]], *args, **kwargs
    ) -> Any:
        """Await *func* with retry logic; cancellation is never retried"""
        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except self.exceptions as e:
                if attempt == self.max_attempts:
                    logger.error(f"All {self.max_attempts} attempts failed")
                    raise
                logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)
                delay = self._next_delay(delay)
        raise RuntimeError("RetryStrategy configured with max_attempts < 1")


class DataValidator:
    """Validation of engine inputs"""

    MAX_CHUNK_SIZE = 100000
    WEIGHT_TOLERANCE = 1e-6

    @staticmethod
    def validate_chunk_options(chunk_size: int, chunk_overlap: int, min_chunk_size: int) -> bool:
        """Validate chunk sizing; overlap must leave room for new content"""
        if chunk_size <= 0 or chunk_size > DataValidator.MAX_CHUNK_SIZE:
            raise ValidationException(
                f"chunk_size must be between 1 and {DataValidator.MAX_CHUNK_SIZE}, got {chunk_size}"
            )
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValidationException(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap}"
            )
        if min_chunk_size < 0 or min_chunk_size > chunk_size:
            raise ValidationException(
                f"min_chunk_size must be in [0, chunk_size], got {min_chunk_size}"
            )
        return True

    @staticmethod
    def validate_search_weights(weights: Dict[str, float], min_score: float, top_k: int) -> bool:
        """Validate hybrid-search weights and cut-offs"""
        for name, value in weights.items():
            if value < 0:
                raise ValidationException(f"{name} must be non-negative, got {value}")
        total = sum(weights.values())
        if total <= 0:
            raise ValidationException("At least one search weight must be positive")
        if total > 1.0 + DataValidator.WEIGHT_TOLERANCE:
            logger.warning(f"Search weights sum to {total:.3f}; scores may exceed 1.0")
        if not 0.0 <= min_score <= 1.0:
            raise ValidationException(f"min_score must be in [0, 1], got {min_score}")
        if top_k < 1:
            raise ValidationException(f"top_k must be >= 1, got {top_k}")
        return True

    @staticmethod
    def validate_embedding_dimensions(embeddings: Dict[str, Sequence[float]]) -> Optional[int]:
        """Check every vector has the same dimension; returns it (None if empty)"""
        dimension: Optional[int] = None
        for node_id, vector in embeddings.items():
            if dimension is None:
                dimension = len(vector)
            elif len(vector) != dimension:
                raise ValidationException(
                    f"Embedding for {node_id} has dimension {len(vector)}, expected {dimension}"
                )
        return dimension

    @staticmethod
    def validate_entries(entries: List[Any], model: Any) -> List[Any]:
        """Coerce raw mappings into *model* instances, wrapping pydantic errors"""
        validated = []
        for position, entry in enumerate(entries):
            if isinstance(entry, model):
                validated.append(entry)
                continue
            try:
                validated.append(model.model_validate(entry))
            except ValidationError as e:
                raise ValidationException(f"Entry #{position} is invalid: {e}") from e
        return validated

    @staticmethod
    def sanitize_text(text: str) -> str:
        """Drop control characters other than newlines and tabs"""
        if not text:
            return ""
        return "".join(char for char in text if ord(char) >= 32 or char in "\n\t")
