from dataclasses import dataclass

import litellm
import numpy as np

from nestfind.cache import SharedCache
from nestfind.constants import EMBEDDING_TEXT_LIMIT


@dataclass
class EmbeddingConfig:
    model: str
    dim: int
    text_limit: int = EMBEDDING_TEXT_LIMIT
    api_key: str | None = None


class Embedder:
    """litellm embeddings, L2-normalised so cosine distance is well defined.

    Single-text lookups (query vectors) go through a cache shared by every session.
    """

    def __init__(self, config: EmbeddingConfig, cache: SharedCache[str, np.ndarray] | None = None):
        self.config = config
        self.cache = cache if cache is not None else SharedCache()

    def _normalize(self, embeddings: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        return embeddings / np.where(norms == 0, 1, norms)

    def _parse_response(self, response) -> np.ndarray:
        rows = sorted(response.data, key=lambda x: x["index"])
        embeddings = np.array([row["embedding"] for row in rows])
        if embeddings.shape[1] != self.config.dim:
            raise ValueError(
                f"{self.config.model} returned {embeddings.shape[1]}-dim vectors, expected {self.config.dim}"
            )
        return self._normalize(embeddings)

    async def embed(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.array([])
        clipped = [t[: self.config.text_limit] for t in texts]
        response = await litellm.aembedding(
            model=self.config.model,
            input=clipped,
            api_key=self.config.api_key,
        )
        return self._parse_response(response)

    async def embed_many(self, texts: list[str]) -> np.ndarray:
        """Embed a batch, sending each distinct text once. Rows follow input order."""
        if not texts:
            return np.array([])
        unique = list(dict.fromkeys(texts))
        vectors = await self.embed(unique)
        position = {text: i for i, text in enumerate(unique)}
        return vectors[[position[t] for t in texts]]

    async def embed_one(self, text: str) -> np.ndarray:
        async def compute() -> np.ndarray:
            return (await self.embed([text]))[0]

        return await self.cache.get_or_compute(text, compute)
