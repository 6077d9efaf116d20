"""
RAG (Retrieval Augmented Generation) System
============================================

Semantic retrieval over a local knowledge directory. Before a conversation
starts, the user's prompt is embedded, the most similar documents are
looked up, and their text is injected as background context.

Components:
- embeddings.py: Generate vector embeddings from text
- vectorstore.py: Store vectors and search them by cosine similarity
- indexer.py: Turn a directory of files into documents

Index lifecycle:
    EMPTY ──build()──> BUILDING ──> READY

The index is built at most once per KnowledgeBase. Calling build() again
returns immediately; a concurrent caller waits for the running build.
A failed build drops the partial index and returns to EMPTY.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from marketmind.rag.embeddings import EmbeddingGenerator
from marketmind.rag.vectorstore import VectorStore, VectorStoreItem, RetrievalResult, cosine_similarity
from marketmind.rag.indexer import DirectoryIndexer
from marketmind.utils.logger import Logger

if TYPE_CHECKING:
    from marketmind.utils.config import Config

logger = Logger("RAG")


class IndexState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"


class KnowledgeBase:
    """
    Owns one retrieval index and its lifecycle.

    Example:
        kb = KnowledgeBase(EmbeddingGenerator(api_key="sk-..."))
        await kb.build(DirectoryIndexer(Path("knowledge")))

        results = await kb.retrieve("How did AAPL trade last week?", top_k=3)
        context = kb.format_results_for_context(results)
    """

    def __init__(self, embeddings: EmbeddingGenerator, vectorstore: VectorStore | None = None):
        """
        Args:
            embeddings: Embedding generator for documents and queries
            vectorstore: Store to fill; a fresh one by default
        """
        self.embeddings = embeddings
        self.vectorstore = vectorstore or VectorStore()
        self.state = IndexState.EMPTY
        self._build_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: "Config") -> "KnowledgeBase":
        return cls(EmbeddingGenerator(
            api_key=config.embedding.api_key,
            model=config.embedding.model,
            base_url=config.embedding.base_url,
        ))

    @property
    def is_ready(self) -> bool:
        return self.state is IndexState.READY

    async def embed_query(self, query: str) -> list[float]:
        """Embed a query without storing it."""
        return await self.embeddings.generate(query)

    async def embed_document(self, document: str) -> list[float]:
        """
        Embed a document and add it to the index.

        Returns:
            The document's embedding
        """
        embedding = await self.embeddings.generate(document)
        self.vectorstore.add_item(embedding, document)
        return embedding

    async def build(self, indexer: DirectoryIndexer) -> int:
        """
        Build the index once.

        Args:
            indexer: Source of documents

        Returns:
            Number of documents in the index
        """
        async with self._build_lock:
            if self.state is IndexState.READY:
                logger.debug("Index already built, skipping")
                return len(self.vectorstore)

            self.state = IndexState.BUILDING
            try:
                await indexer.index(self)
            except Exception:
                self.vectorstore = VectorStore()
                self.state = IndexState.EMPTY
                raise

            self.state = IndexState.READY
            logger.info(f"Knowledge base ready with {len(self.vectorstore)} documents")
            return len(self.vectorstore)

    async def retrieve(self, query: str, top_k: int = 3) -> list[RetrievalResult]:
        """
        Return the top_k documents most similar to the query.

        Raises:
            DimensionMismatchError: If the query embedding does not match
                the stored embeddings
        """
        if len(self.vectorstore) == 0:
            return []

        logger.debug(f"RAG search: '{query[:50]}...'")
        query_embedding = await self.embed_query(query)
        results = self.vectorstore.search(query_embedding, top_k)
        logger.debug(f"Found {len(results)} results")
        return results

    @staticmethod
    def format_results_for_context(results: list[RetrievalResult]) -> str:
        """
        Join retrieved documents into one context string for the model.

        Returns:
            Documents separated by blank lines, "" when there are none
        """
        return "\n\n".join(r.document for r in results)


__all__ = [
    "KnowledgeBase",
    "IndexState",
    "EmbeddingGenerator",
    "VectorStore",
    "VectorStoreItem",
    "RetrievalResult",
    "DirectoryIndexer",
    "cosine_similarity",
]
