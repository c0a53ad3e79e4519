"""Lexical chunk retrieval over a single document.

Documents are cut into contiguous, non-overlapping windows and every window
is scored by how many query tokens occur in it as plain substrings. This is
deliberately simple; anything smarter (BM25, embeddings) can be plugged in by
implementing ``ChunkRetriever``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import numpy as np


@dataclass(frozen=True)
class ScoredChunk:
    text: str
    score: int
    index: int


def split_into_chunks(text: str, chunk_size: int) -> List[str]:
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [text[start:start + chunk_size] for start in range(0, len(text), chunk_size)]


def query_tokens(query: str, min_token_length: int = 3) -> List[str]:
    """Lower-cased whitespace tokens longer than ``min_token_length``"""
    return [token for token in query.lower().split() if len(token) > min_token_length]


def score_chunks(
    document_text: str,
    query: str,
    chunk_size: int = 800,
    min_token_length: int = 3,
    top_k: int = 3,
) -> List[ScoredChunk]:
    """Rank the windows of ``document_text`` against ``query``.

    A token counts once per occurrence in the query, and it matches a window
    when it is a substring of the lower-cased window ("cat" matches
    "category"). Zero-score windows are never returned, so an empty list
    means nothing in the document is relevant.
    """
    chunks = split_into_chunks(document_text or "", chunk_size)
    tokens = query_tokens(query or "", min_token_length)
    if not chunks or not tokens:
        return []

    lowered = [chunk.lower() for chunk in chunks]
    scores = np.array([sum(1 for token in tokens if token in chunk) for chunk in lowered])

    # Stable sort keeps document order between equal scores
    top_indices = np.argsort(-scores, kind="stable")[:top_k]

    results = []
    for idx in top_indices:
        if scores[idx] > 0:
            results.append(ScoredChunk(text=chunks[idx], score=int(scores[idx]), index=int(idx)))
    return results


class ChunkRetriever(ABC):
    """Finds the fragments of a document that are relevant to a query."""

    @abstractmethod
    def retrieve(self, document_text: str, query: str) -> List[ScoredChunk]:
        """Relevant fragments, best first. Empty when nothing matches."""

    @abstractmethod
    def opening_chunks(self, document_text: str) -> List[ScoredChunk]:
        """The first fragments of the document, used when there is no question to match."""


class KeywordChunkRetriever(ChunkRetriever):
    def __init__(self, chunk_size: int = 800, min_token_length: int = 3, top_k: int = 3):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self.min_token_length = min_token_length
        self.top_k = top_k

    def retrieve(self, document_text: str, query: str) -> List[ScoredChunk]:
        return score_chunks(
            document_text,
            query,
            chunk_size=self.chunk_size,
            min_token_length=self.min_token_length,
            top_k=self.top_k,
        )

    def opening_chunks(self, document_text: str) -> List[ScoredChunk]:
        chunks = split_into_chunks(document_text or "", self.chunk_size)[:self.top_k]
        return [ScoredChunk(text=chunk, score=0, index=idx) for idx, chunk in enumerate(chunks)]
