"""
Directory Indexer
=================

Indexes the files of a knowledge directory into the vector store.

Indexing Strategy:
- Every regular file directly inside the directory is one document
- Subdirectories are skipped (no recursion)
- Empty or whitespace-only files are skipped
- Files are embedded one at a time, in name order, so the store's
  insertion order (the tie-breaker for equal scores) is reproducible
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from marketmind.utils.logger import Logger

if TYPE_CHECKING:
    from marketmind.rag import KnowledgeBase

logger = Logger("Indexer")


class DirectoryIndexer:
    """
    Feeds a directory's files into a knowledge base.

    Example:
        indexer = DirectoryIndexer(Path("knowledge"))
        count = await indexer.index(knowledge_base)
        print(f"Indexed {count} documents")
    """

    def __init__(self, directory: Path, encoding: str = "utf-8"):
        """
        Args:
            directory: Directory whose files become documents
            encoding: Text encoding of the files
        """
        self.directory = Path(directory)
        self.encoding = encoding

    def list_documents(self) -> list[Path]:
        """Regular files directly inside the directory, sorted by name."""
        if not self.directory.is_dir():
            logger.warning(f"Knowledge directory not found: {self.directory}")
            return []
        return sorted(p for p in self.directory.iterdir() if p.is_file())

    async def _read(self, path: Path) -> str:
        return await asyncio.to_thread(path.read_text, encoding=self.encoding, errors="replace")

    async def index(self, knowledge_base: "KnowledgeBase") -> int:
        """
        Embed every document into the knowledge base.

        Args:
            knowledge_base: Receives each document via embed_document()

        Returns:
            Number of documents indexed
        """
        files = self.list_documents()
        logger.info(f"Indexing {len(files)} files from {self.directory}")

        count = 0
        for path in files:
            content = await self._read(path)
            if not content.strip():
                logger.debug(f"Skipping empty file: {path.name}")
                continue

            await knowledge_base.embed_document(content)
            count += 1
            logger.debug(f"Indexed {path.name} ({len(content)} chars)")

        logger.info(f"Indexed {count} documents")
        return count
