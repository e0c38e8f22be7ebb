"""Memory service: owns the model/store handles and answers get_memories().

Lifecycle is UNINITIALIZED -> INITIALIZING -> READY. Every caller that arrives while
initialization is running awaits the same task, so the embedding model is loaded
once. A failed initialization drops back to UNINITIALIZED and the next call retries.

get_memories() never raises: any failure is logged and the conversation carries on
without memories.
"""

import asyncio
import enum
import logging
import time
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from memory_engine.config.settings import Settings, settings as default_settings
from memory_engine.memory.manifest import Manifest
from memory_engine.rag.corpus import SourceDocument, list_sources
from memory_engine.rag.embeddings import Embedder, SentenceTransformerEmbedder
from memory_engine.rag.lexical import LexicalDocument, LexicalIndex, load_corpus
from memory_engine.rag.ranker import format_results, rank
from memory_engine.rag.semantic import SemanticIndex, SyncReport
from memory_engine.rag.vector_store import ChromaVectorStore, VectorStore
from memory_engine.schemas import Match, RetrievalResult, Turn

logger = logging.getLogger(__name__)


class ServiceState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class MemoryInitError(RuntimeError):
    """Model or store could not be brought up."""


def latest_user_query(turns: Sequence[Turn | Mapping[str, Any]] | None) -> str | None:
    """Content of the last turn if it is a non-empty user turn, else None."""
    if not turns:
        return None
    last = turns[-1]
    try:
        turn = last if isinstance(last, Turn) else Turn.model_validate(last)
    except ValidationError:
        logger.debug("memory: last turn is not a valid {role, content} record")
        return None
    if turn.role != "user" or not turn.content.strip():
        return None
    return turn.content


class MemoryService:
    """One per process. Build with get_memory_service() or inject collaborators for tests."""

    def __init__(
        self,
        settings: Settings | None = None,
        embedder: Embedder | None = None,
        store: VectorStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or default_settings
        self.strategy = self.settings.strategy
        self._embedder = embedder
        self._store = store
        self._clock = clock
        self._semantic: SemanticIndex | None = None

        self._state = ServiceState.UNINITIALIZED
        self._init_task: asyncio.Task | None = None
        self._sync_lock = asyncio.Lock()
        self._resync_tasks: set[asyncio.Task] = set()

        self._corpus: list[LexicalDocument] | None = None
        self._corpus_loaded_at = 0.0

    @property
    def state(self) -> ServiceState:
        return self._state

    def sources(self) -> list[SourceDocument]:
        s = self.settings
        return list_sources(s.memory_path(), s.log_path(), s.fact_document)

    # -- initialization -------------------------------------------------

    async def ensure_ready(self) -> None:
        """Initialize once; concurrent callers share the in-flight attempt."""
        if self._state is ServiceState.READY:
            return
        if self._init_task is None:
            self._state = ServiceState.INITIALIZING
            self._init_task = asyncio.create_task(self._run_init())
        try:
            await asyncio.shield(self._init_task)
        except MemoryInitError:
            raise
        except Exception as e:
            raise MemoryInitError(str(e)) from e

    async def _run_init(self) -> None:
        t0 = time.monotonic()
        try:
            if self.strategy == "semantic":
                await self._open_semantic()
                async with self._sync_lock:
                    await self._semantic.sync(self.sources())
            else:
                await self._load_corpus(force=True)
        except Exception as e:
            logger.error("memory: initialization failed (%s): %s", self.strategy, e)
            self._state = ServiceState.UNINITIALIZED
            self._init_task = None
            raise MemoryInitError(f"{self.strategy} memory index unavailable: {e}") from e
        self._state = ServiceState.READY
        logger.info("memory: %s index ready (%.1fs)", self.strategy, time.monotonic() - t0)

    async def _open_semantic(self) -> None:
        s = self.settings
        if self._embedder is None:
            self._embedder = SentenceTransformerEmbedder(s.embedding_model)
        if self._store is None:
            self._store = ChromaVectorStore(s.index_path(), s.collection_name)
        await self._embedder.load()
        if self._semantic is None:
            self._semantic = SemanticIndex(
                self._embedder,
                self._store,
                Manifest(s.manifest_path()),
                batch_size=s.embed_batch_size,
                top_k=s.semantic_top_k,
                chunk_size=s.chunk_size,
                chunk_overlap=s.chunk_overlap,
                min_chunk_length=s.min_chunk_length,
            )
        await self._semantic.open()

    # -- lexical corpus cache --------------------------------------------

    async def _load_corpus(self, force: bool = False) -> list[LexicalDocument]:
        now = self._clock()
        fresh = self._corpus is not None and now - self._corpus_loaded_at < self.settings.corpus_cache_seconds
        if fresh and not force:
            return self._corpus
        s = self.settings
        self._corpus = await asyncio.to_thread(load_corpus, s.memory_path(), s.log_path(), s.fact_document)
        self._corpus_loaded_at = now
        return self._corpus

    # -- queries -----------------------------------------------------------

    async def _search(self, query: str) -> list[Match]:
        if self.strategy == "semantic":
            return await self._semantic.search(query, self.settings.semantic_top_k)
        corpus = await self._load_corpus()
        index = LexicalIndex(corpus, top_k=self.settings.lexical_top_k, min_score=self.settings.lexical_min_score)
        return await asyncio.to_thread(index.search, query)

    def _top_k(self) -> int:
        return self.settings.semantic_top_k if self.strategy == "semantic" else self.settings.lexical_top_k

    async def retrieve(self, turns: Sequence[Turn | Mapping[str, Any]]) -> RetrievalResult:
        """Ranked matches for the latest user turn; [] when inactive or on any failure."""
        query = latest_user_query(turns)
        if query is None:
            return []
        try:
            await self.ensure_ready()
            matches = await self._search(query)
        except Exception:
            logger.exception("memory: search failed, continuing without memories")
            return []
        results = rank(matches, self._top_k())
        logger.info("memory: %d memory snippet(s) for query (len=%d)", len(results), len(query))
        return results

    async def get_memories(self, turns: Sequence[Turn | Mapping[str, Any]]) -> list[str]:
        """Provenance-tagged snippets for prompt assembly."""
        return format_results(await self.retrieve(turns))

    # -- invalidation / sync ---------------------------------------------

    def invalidate(self) -> asyncio.Task | None:
        """Mark memory sources as changed.

        Lexical: the next query reloads the corpus. Semantic: schedules a background
        resync and returns its task without waiting for it.
        """
        self._corpus = None
        if self.strategy != "semantic" or self._state is ServiceState.UNINITIALIZED:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("memory: invalidate() outside an event loop, resync deferred to next sync")
            return None
        task = loop.create_task(self.resync())
        self._resync_tasks.add(task)
        task.add_done_callback(self._resync_tasks.discard)
        return task

    async def resync(self) -> SyncReport | None:
        """Incremental sync that logs failures instead of raising."""
        try:
            return await self.sync()
        except Exception:
            logger.exception("memory: background resync failed")
            return None

    async def sync(self) -> SyncReport:
        """Incremental sync of the semantic index; raises on failure."""
        self._require_semantic("sync")
        await self.ensure_ready()
        async with self._sync_lock:
            return await self._semantic.sync(self.sources())

    async def rebuild(self) -> SyncReport:
        """Drop and re-embed the whole semantic index."""
        self._require_semantic("rebuild")
        # Cold starts go through the shared init so the model is loaded once
        await self.ensure_ready()
        async with self._sync_lock:
            return await self._semantic.rebuild(self.sources())

    def _require_semantic(self, op: str) -> None:
        if self.strategy != "semantic":
            raise ValueError(f"{op} needs the semantic strategy (configured: {self.strategy})")

    async def close(self) -> None:
        """Wait for background resyncs, then release the model and store handles."""
        if self._resync_tasks:
            await asyncio.gather(*self._resync_tasks, return_exceptions=True)
        if self._init_task is not None and not self._init_task.done():
            await asyncio.gather(self._init_task, return_exceptions=True)
        if self._embedder is not None:
            self._embedder.close()
        if self._store is not None:
            self._store.close()
        self._semantic = None
        self._corpus = None
        self._init_task = None
        self._state = ServiceState.UNINITIALIZED
        logger.info("memory: service closed")


# Module-level default service for the request handler and CLI
_default_service: MemoryService | None = None


def get_memory_service() -> MemoryService:
    """Get the default memory service (lazy init)."""
    global _default_service
    if _default_service is None:
        _default_service = MemoryService()
    return _default_service


async def get_memories(turns: Sequence[Turn | Mapping[str, Any]]) -> list[str]:
    return await get_memory_service().get_memories(turns)


def invalidate_memory_cache() -> asyncio.Task | None:
    return get_memory_service().invalidate()
