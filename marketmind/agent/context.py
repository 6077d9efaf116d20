"""
Context Assembly
================

Builds the background context injected before a conversation starts.

The user's prompt is embedded, the closest documents in the knowledge
base are retrieved, and their text is joined into one string that the
chat session adds as a user turn right after the system prompt.

Retrieval is best-effort: if the embedding service is unreachable the
agent still runs, just without context. A dimension mismatch between the
query and the index is a configuration bug and is raised.
"""

from marketmind.errors import DimensionMismatchError
from marketmind.rag import KnowledgeBase
from marketmind.utils.logger import Logger

logger = Logger("Context")


class ContextAssembler:
    """
    Assembles retrieval context for a prompt.

    Example:
        assembler = ContextAssembler(knowledge_base, top_k=3)
        context = await assembler.assemble("Summarize this week's TSLA news")
    """

    def __init__(self, knowledge_base: KnowledgeBase | None, top_k: int = 3):
        """
        Args:
            knowledge_base: Built knowledge base, or None to disable retrieval
            top_k: Number of documents to include
        """
        self.knowledge_base = knowledge_base
        self.top_k = top_k

    async def assemble(self, query: str) -> str:
        """
        Retrieve context for a query.

        Args:
            query: The user's prompt

        Returns:
            The context string, "" when nothing was retrieved

        Raises:
            DimensionMismatchError: If the query embedding does not fit the index
        """
        if self.knowledge_base is None or not self.knowledge_base.is_ready:
            return ""

        try:
            results = await self.knowledge_base.retrieve(query, top_k=self.top_k)
        except DimensionMismatchError:
            raise
        except Exception as e:
            logger.error("Retrieval failed, continuing without context", e)
            return ""

        for r in results:
            logger.debug(f"Retrieved ({r.score:.3f}): {r.document[:80]}")

        return KnowledgeBase.format_results_for_context(results)
