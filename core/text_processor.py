"""
Text Processing Service
=======================

Whitespace normalization, sentence splitting and fixed-window chunking
shared by the chunking strategies.
"""

import re
from typing import List, Optional

from core.logging_config import Logger


logger = Logger(__name__)

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def split_sentences(text: str) -> List[str]:
    """Split on ``.``, ``!`` or ``?`` followed by whitespace; empty pieces dropped."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


class TextProcessor:
    """Fixed-size character chunking"""

    def __init__(self, default_chunk_size: int = 1000, default_overlap: int = 200):
        self.default_chunk_size = default_chunk_size
        self.default_overlap = default_overlap

    def chunk_text(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> List[str]:
        """
        Split text into fixed windows with overlap.

        A window that would cut mid-sentence is pulled back to the last
        sentence terminator inside it, when one exists past the window start.

        Args:
            text: Input text
            chunk_size: Size of each chunk in characters
            overlap: Overlap between chunks in characters

        Returns:
            List of text chunks
        """
        chunk_size = chunk_size if chunk_size is not None else self.default_chunk_size
        overlap = overlap if overlap is not None else self.default_overlap

        if not text or len(text) <= chunk_size:
            return [text] if text else []

        chunks = []
        start = 0

        while start < len(text):
            end = min(start + chunk_size, len(text))

            if end < len(text):
                sentence_end = max(
                    text.rfind(".", start, end),
                    text.rfind("!", start, end),
                    text.rfind("?", start, end),
                    text.rfind("\n", start, end),
                )
                if sentence_end > start:
                    end = sentence_end + 1

            chunk = text[start:end].strip()
            if chunk:
                chunks.append(chunk)

            if end >= len(text):
                break
            # Always advance, even when the overlap covers the whole window
            start = max(end - overlap, start + 1)

        logger.debug(f"Split {len(text)} characters into {len(chunks)} fixed chunks")
        return chunks
