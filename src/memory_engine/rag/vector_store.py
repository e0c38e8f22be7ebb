"""Vector store: persisted IndexEntry rows with nearest-neighbour search (ChromaDB)."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    """One stored chunk. Rows are written once and only ever deleted by source."""

    id: str
    vector: list[float]
    text: str
    source: str
    type: str
    timestamp: float


@dataclass(frozen=True)
class StoredHit:
    """A search hit; distance is cosine distance (0 = identical)."""

    id: str
    text: str
    source: str
    type: str
    timestamp: float
    distance: float


class VectorStore(Protocol):
    async def open(self) -> bool:
        """Connect and open the existing table. Returns False if there is none yet."""
        ...

    async def create_table(self, entries: list[IndexEntry]) -> None: ...

    async def add(self, entries: list[IndexEntry]) -> None: ...

    async def delete_source(self, source: str) -> None: ...

    async def drop_table(self) -> None: ...

    async def search(self, vector: list[float], limit: int) -> list[StoredHit]: ...

    async def count(self) -> int: ...

    def close(self) -> None: ...


class ChromaVectorStore:
    """ChromaDB persistent collection using cosine space."""

    def __init__(self, index_dir: Path | str, collection_name: str):
        self.index_dir = Path(index_dir)
        self.collection_name = collection_name
        self._client = None
        self._collection = None

    async def open(self) -> bool:
        return await asyncio.to_thread(self._open)

    def _open(self) -> bool:
        import chromadb

        if self._client is None:
            self.index_dir.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(path=str(self.index_dir))
            logger.info("rag.store: connected to %s", self.index_dir)
        # list_collections() yields names on chromadb>=0.6, Collection objects before
        names = {getattr(c, "name", c) for c in self._client.list_collections()}
        if self.collection_name in names:
            self._collection = self._client.get_collection(self.collection_name)
            logger.info("rag.store: opened table %s (%d rows)", self.collection_name, self._collection.count())
            return True
        self._collection = None
        return False

    def _require_client(self):
        if self._client is None:
            raise RuntimeError("vector store not opened")
        return self._client

    async def create_table(self, entries: list[IndexEntry]) -> None:
        def _create() -> None:
            client = self._require_client()
            self._collection = client.create_collection(
                self.collection_name, metadata={"hnsw:space": "cosine"}
            )
            self._add(entries)
            logger.info("rag.store: created table %s with %d rows", self.collection_name, len(entries))

        await asyncio.to_thread(_create)

    async def add(self, entries: list[IndexEntry]) -> None:
        await asyncio.to_thread(self._add, entries)

    def _add(self, entries: list[IndexEntry]) -> None:
        if not entries:
            return
        if self._collection is None:
            raise RuntimeError(f"table {self.collection_name} does not exist")
        self._collection.add(
            ids=[e.id for e in entries],
            embeddings=[e.vector for e in entries],
            documents=[e.text for e in entries],
            metadatas=[{"source": e.source, "type": e.type, "timestamp": e.timestamp} for e in entries],
        )

    async def delete_source(self, source: str) -> None:
        if self._collection is None:
            return
        await asyncio.to_thread(self._collection.delete, where={"source": source})

    async def drop_table(self) -> None:
        def _drop() -> None:
            client = self._require_client()
            names = {getattr(c, "name", c) for c in client.list_collections()}
            if self.collection_name in names:
                client.delete_collection(self.collection_name)
                logger.info("rag.store: dropped table %s", self.collection_name)
            self._collection = None

        await asyncio.to_thread(_drop)

    async def count(self) -> int:
        if self._collection is None:
            return 0
        return await asyncio.to_thread(self._collection.count)

    async def search(self, vector: list[float], limit: int) -> list[StoredHit]:
        return await asyncio.to_thread(self._search, vector, limit)

    def _search(self, vector: list[float], limit: int) -> list[StoredHit]:
        if self._collection is None:
            return []
        count = self._collection.count()
        if count == 0:
            return []
        results = self._collection.query(
            query_embeddings=[vector],
            n_results=min(limit, count),
            include=["documents", "metadatas", "distances"],
        )
        hits: list[StoredHit] = []
        if not results or not results["ids"]:
            return hits
        for id_, doc, meta, dist in zip(
            results["ids"][0],
            results["documents"][0],
            results["metadatas"][0],
            results["distances"][0],
        ):
            if not doc or not meta:
                continue
            hits.append(
                StoredHit(
                    id=id_,
                    text=doc,
                    source=meta.get("source", ""),
                    type=meta.get("type", "history"),
                    timestamp=float(meta.get("timestamp", 0.0)),
                    distance=float(dist),
                )
            )
        return hits

    def close(self) -> None:
        self._collection = None
        self._client = None
