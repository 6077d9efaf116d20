"""
Vector Store
============

An in-memory vector store with brute-force cosine similarity search.

The knowledge directory holds a handful of documents, so a linear scan
over a numpy matrix is all the indexing needed. Items live for the
lifetime of the process and are never updated or deleted.

How Vector Search Works:
1. Store documents with their embedding vectors
2. When searching, compute cosine similarity between query and all stored vectors
3. Return the top-k most similar documents

Cosine Similarity:
    cos(A, B) = (A · B) / (||A|| * ||B||)
    - Returns a value from -1 to 1
    - 1 means identical direction (most similar)
    - 0 means perpendicular (unrelated)
    - -1 means opposite direction
    - A zero vector scores 0 against everything
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from marketmind.errors import DimensionMismatchError
from marketmind.utils.logger import Logger

logger = Logger("VectorStore")


@dataclass(frozen=True)
class VectorStoreItem:
    """
    A document stored in the vector store.

    Attributes:
        embedding: The vector embedding
        document: The original text content
    """
    embedding: tuple[float, ...]
    document: str


@dataclass(frozen=True)
class RetrievalResult:
    """A search hit: the document and its cosine similarity to the query."""
    document: str
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class VectorStore:
    """
    In-memory store of (embedding, document) pairs.

    All embeddings in one store share the dimensionality of the first
    item added.

    Example:
        store = VectorStore()
        store.add_item([1.0, 0.0], "A cat sat")
        store.add_item([0.0, 1.0], "A dog ran")

        results = store.search([1.0, 0.0], top_k=1)
        # [RetrievalResult(document="A cat sat", score=1.0)]
    """

    def __init__(self):
        self._items: list[VectorStoreItem] = []
        self._matrix: np.ndarray | None = None  # rebuilt lazily on search

    @property
    def dimension(self) -> int | None:
        """Dimensionality of stored embeddings, None while empty."""
        return len(self._items[0].embedding) if self._items else None

    def add_item(self, embedding: Sequence[float], document: str) -> VectorStoreItem:
        """
        Add one document and its embedding.

        Args:
            embedding: The document's embedding vector
            document: The document text

        Returns:
            The stored item

        Raises:
            DimensionMismatchError: If the embedding length differs from
                the store's dimensionality
        """
        if self._items and len(embedding) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(embedding))

        item = VectorStoreItem(embedding=tuple(float(x) for x in embedding), document=document)
        self._items.append(item)
        self._matrix = None
        logger.debug(f"Added document ({len(document)} chars, dim={len(item.embedding)})")
        return item

    def search(self, query_embedding: Sequence[float], top_k: int = 3) -> list[RetrievalResult]:
        """
        Find the stored documents most similar to a query embedding.

        Args:
            query_embedding: The query vector
            top_k: Maximum number of results to return

        Returns:
            min(top_k, len(store)) results, highest score first; equal
            scores keep insertion order

        Raises:
            DimensionMismatchError: If the query length differs from the
                stored embeddings
        """
        if not self._items:
            return []

        if len(query_embedding) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(query_embedding))

        if top_k <= 0:
            return []

        if self._matrix is None:
            self._matrix = np.array([item.embedding for item in self._items], dtype=float)

        query = np.asarray(query_embedding, dtype=float)
        query_norm = np.linalg.norm(query)
        doc_norms = np.linalg.norm(self._matrix, axis=1)

        denominators = doc_norms * query_norm
        dots = self._matrix @ query
        similarities = np.divide(
            dots, denominators, out=np.zeros_like(dots), where=denominators != 0
        )

        order = np.argsort(-similarities, kind="stable")[:top_k]
        return [
            RetrievalResult(document=self._items[i].document, score=float(similarities[i]))
            for i in order
        ]

    def items(self) -> list[VectorStoreItem]:
        return list(self._items)

    def __len__(self) -> int:
        """Get the number of documents in the store."""
        return len(self._items)
