"""Vector-similarity memory index: incremental sync, full rebuild, search."""

import logging
import time
from dataclasses import dataclass, field

from memory_engine.memory.manifest import Manifest
from memory_engine.rag.chunker import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_CHUNK_LENGTH,
    MemoryChunk,
    chunk_text,
)
from memory_engine.rag.corpus import SourceDocument
from memory_engine.rag.embeddings import Embedder
from memory_engine.rag.vector_store import IndexEntry, VectorStore
from memory_engine.schemas import Match

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_TOP_K = 5


@dataclass
class SyncReport:
    """What one sync or rebuild pass did."""

    scanned: int = 0
    dirty: list[str] = field(default_factory=list)
    indexed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    chunks_written: int = 0
    failed_batches: int = 0
    dropped_chunks: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.dirty or self.removed)


@dataclass
class _EmbedOutcome:
    entries: list[IndexEntry] = field(default_factory=list)
    failed_sources: set[str] = field(default_factory=set)
    failed_batches: int = 0
    dropped_chunks: int = 0


class SemanticIndex:
    """Keeps the vector store in step with the memory sources."""

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStore,
        manifest: Manifest,
        batch_size: int = DEFAULT_BATCH_SIZE,
        top_k: int = DEFAULT_TOP_K,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        min_chunk_length: int = DEFAULT_MIN_CHUNK_LENGTH,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.embedder = embedder
        self.store = store
        self.manifest = manifest
        self.batch_size = batch_size
        self.top_k = top_k
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chunk_length = min_chunk_length
        self._has_table = False

    async def open(self) -> None:
        self.manifest.load()
        self._has_table = await self.store.open()
        if not self._has_table and len(self.manifest):
            # Manifest without a table means the store was wiped; reindex everything
            logger.warning("rag.sync: manifest lists %d source(s) but no table exists, resetting", len(self.manifest))
            self.manifest.clear()

    def _chunk(self, source: SourceDocument) -> list[MemoryChunk]:
        return chunk_text(
            source.read_text(),
            source.source,
            source.type,
            chunk_size=self.chunk_size,
            overlap=self.chunk_overlap,
            min_length=self.min_chunk_length,
        )

    async def _embed_chunks(self, chunks: list[MemoryChunk]) -> _EmbedOutcome:
        """Embed in sequential batches. A failed batch is logged and dropped, never retried."""
        outcome = _EmbedOutcome()
        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i : i + self.batch_size]
            try:
                vectors = await self.embedder.embed([c.text for c in batch])
                if len(vectors) != len(batch):
                    raise ValueError(f"embedder returned {len(vectors)} vectors for {len(batch)} texts")
            except Exception:
                logger.warning(
                    "rag.sync: embedding batch %d failed, dropping %d chunk(s)",
                    i // self.batch_size,
                    len(batch),
                    exc_info=True,
                )
                outcome.failed_batches += 1
                outcome.dropped_chunks += len(batch)
                outcome.failed_sources.update(c.source for c in batch)
                continue
            for chunk, vector in zip(batch, vectors):
                outcome.entries.append(
                    IndexEntry(
                        id=chunk.id,
                        vector=list(vector),
                        text=chunk.text,
                        source=chunk.source,
                        type=chunk.type,
                        timestamp=chunk.timestamp,
                    )
                )
        return outcome

    async def _write(self, entries: list[IndexEntry]) -> None:
        if not entries:
            return
        if self._has_table:
            await self.store.add(entries)
        else:
            await self.store.create_table(entries)
            self._has_table = True

    def _gather_chunks(self, sources: list[SourceDocument], report: SyncReport) -> tuple[list[MemoryChunk], list[SourceDocument]]:
        chunks: list[MemoryChunk] = []
        readable: list[SourceDocument] = []
        for source in sources:
            try:
                source_chunks = self._chunk(source)
            except OSError as e:
                logger.warning("rag.sync: could not read %s: %s", source.source, e)
                continue
            logger.info("rag.sync: re-indexing %s (%d chunk(s))", source.source, len(source_chunks))
            chunks.extend(source_chunks)
            readable.append(source)
        report.dirty = [s.source for s in readable]
        return chunks, readable

    def _finish(self, sources: list[SourceDocument], outcome: _EmbedOutcome, report: SyncReport) -> None:
        for source in sources:
            if source.source in outcome.failed_sources:
                logger.warning("rag.sync: %s partially indexed, will retry next pass", source.source)
                continue
            self.manifest.mark_indexed(source.source, source.mtime)
            report.indexed.append(source.source)
        report.chunks_written = len(outcome.entries)
        report.failed_batches = outcome.failed_batches
        report.dropped_chunks = outcome.dropped_chunks
        self.manifest.save()

    async def sync(self, sources: list[SourceDocument]) -> SyncReport:
        """Re-embed only sources that changed since they were last indexed.

        Each dirty source is replaced as a whole: its old rows are deleted and the
        new chunks appended. Sources that vanished from disk are removed.
        """
        t0 = time.monotonic()
        report = SyncReport(scanned=len(sources))
        present = {s.source for s in sources}
        report.removed = [name for name in self.manifest.as_dict() if name not in present]
        dirty = self.manifest.dirty_sources(sources)
        logger.info("rag.sync: %d source(s) checked, %d dirty, %d removed", len(sources), len(dirty), len(report.removed))
        if not dirty and not report.removed:
            return report

        chunks, readable = self._gather_chunks(dirty, report)
        outcome = await self._embed_chunks(chunks)

        if self._has_table:
            for name in report.dirty + report.removed:
                await self.store.delete_source(name)
        await self._write(outcome.entries)

        for name in report.removed:
            self.manifest.forget(name)
        self._finish(readable, outcome, report)
        logger.info(
            "rag.sync: wrote %d chunk(s) for %d source(s), dropped %d (%.1fs)",
            report.chunks_written,
            len(report.indexed),
            report.dropped_chunks,
            time.monotonic() - t0,
        )
        return report

    async def rebuild(self, sources: list[SourceDocument]) -> SyncReport:
        """Drop the table and re-embed every source."""
        t0 = time.monotonic()
        report = SyncReport(scanned=len(sources))
        await self.store.drop_table()
        self._has_table = False
        self.manifest.clear()

        chunks, readable = self._gather_chunks(sources, report)
        outcome = await self._embed_chunks(chunks)
        await self._write(outcome.entries)
        self._finish(readable, outcome, report)
        logger.info("rag.rebuild: %d chunk(s) from %d source(s) (%.1fs)", report.chunks_written, len(readable), time.monotonic() - t0)
        return report

    async def search(self, query: str, limit: int | None = None) -> list[Match]:
        """Nearest neighbours of the query, in store order."""
        if not query or not query.strip() or not self._has_table:
            return []
        [vector] = await self.embedder.embed([query])
        hits = await self.store.search(vector, limit or self.top_k)
        logger.info("rag.search: %d match(es) for query (len=%d)", len(hits), len(query))
        if hits:
            logger.debug("rag.search: top match %s: %.100s", hits[0].source, hits[0].text)
        return [Match(text=h.text, source=h.source, type=h.type, score=1.0 - h.distance) for h in hits]
