"""
Embedding Generation
====================

Generates vector embeddings from text using an OpenAI-compatible
embeddings endpoint (OpenAI itself, or any provider exposing
POST {base_url}/embeddings).

What are embeddings?
- A vector (list of numbers) that represents the meaning of text
- Texts with similar meanings have similar vectors
- Enables semantic search (finding similar content by meaning)

Caching:
    Embeddings are cached per process, so the same text is only sent to
    the API once.
"""

import hashlib

from openai import AsyncOpenAI

from marketmind.utils.logger import Logger

logger = Logger("Embeddings")


class EmbeddingGenerator:
    """
    Generates text embeddings through the embeddings API.

    Example:
        generator = EmbeddingGenerator(api_key="sk-...", model="text-embedding-3-small")
        vector = await generator.generate("What moved NVDA this week?")
    """

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        client: AsyncOpenAI | None = None
    ):
        """
        Initialize the embedding generator.

        Args:
            api_key: API key for the embeddings endpoint
            model: Embedding model to use
            base_url: OpenAI-compatible endpoint, None for api.openai.com
            client: Pre-built client (tests inject a fake here)
        """
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model

        # Key: hash of text, Value: embedding vector
        self._cache: dict[str, list[float]] = {}

        logger.info(f"Embedding generator initialized with model: {model}")

    def _hash_text(self, text: str) -> str:
        """Create a hash key for caching."""
        return hashlib.md5(text.encode()).hexdigest()

    async def generate(self, text: str) -> list[float]:
        """
        Generate an embedding for a single text.

        Args:
            text: The text to embed

        Returns:
            Vector embedding as a list of floats
        """
        cache_key = self._hash_text(text)
        if cache_key in self._cache:
            logger.debug("Embedding cache hit")
            return self._cache[cache_key]

        response = await self.client.embeddings.create(
            model=self.model,
            input=text
        )

        embedding = list(response.data[0].embedding)
        self._cache[cache_key] = embedding

        logger.debug(f"Generated embedding (dim={len(embedding)})")
        return embedding

    def get_cache_size(self) -> int:
        """Get the number of cached embeddings."""
        return len(self._cache)
