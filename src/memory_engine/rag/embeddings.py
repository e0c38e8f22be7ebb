"""Embedding service: sentence-transformers behind an async interface."""

import asyncio
import logging
import time
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

Vector = list[float]


class Embedder(Protocol):
    """Anything that turns text into fixed-dimension vectors."""

    async def load(self) -> None: ...

    async def embed(self, texts: str | Sequence[str]) -> list[Vector]: ...

    def close(self) -> None: ...


class SentenceTransformerEmbedder:
    """Lazily loaded SentenceTransformer; encode runs in a worker thread."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model = None

    async def load(self) -> None:
        if self._model is not None:
            return
        t0 = time.monotonic()
        logger.info("rag.embed: loading model %s", self.model_name)
        self._model = await asyncio.to_thread(self._load_model)
        logger.info("rag.embed: loaded model %s (%.1fs)", self.model_name, time.monotonic() - t0)

    def _load_model(self):
        from sentence_transformers import SentenceTransformer

        return SentenceTransformer(self.model_name)

    async def embed(self, texts: str | Sequence[str]) -> list[Vector]:
        if self._model is None:
            raise RuntimeError(f"embedding model {self.model_name} not loaded")
        batch = [texts] if isinstance(texts, str) else list(texts)
        if not batch:
            return []
        vectors = await asyncio.to_thread(
            self._model.encode,
            batch,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return vectors.tolist()

    def close(self) -> None:
        self._model = None
