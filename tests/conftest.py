"""Shared fixtures: fake embedding service and in-memory vector store."""

import asyncio
import hashlib
import math
import os
from pathlib import Path
from typing import Callable, Sequence

import pytest

from memory_engine.config.settings import Settings
from memory_engine.rag.lexical import tokenize
from memory_engine.rag.vector_store import IndexEntry, StoredHit

DIM = 64


def hashed_vector(text: str) -> list[float]:
    """Bag-of-words vector: each token bumps one md5-chosen dimension."""
    vec = [0.0] * DIM
    for token in tokenize(text):
        bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % DIM
        vec[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec] if norm else vec


class FakeEmbedder:
    def __init__(self, fail_when: Callable[[list[str]], bool] | None = None, fail_loads: int = 0):
        self.fail_when = fail_when
        self.fail_loads = fail_loads
        self.load_calls = 0
        self.embed_calls: list[list[str]] = []
        self.loaded = False

    async def load(self) -> None:
        self.load_calls += 1
        await asyncio.sleep(0.01)
        if self.fail_loads > 0:
            self.fail_loads -= 1
            raise RuntimeError("model download failed")
        self.loaded = True

    async def embed(self, texts: str | Sequence[str]) -> list[list[float]]:
        batch = [texts] if isinstance(texts, str) else list(texts)
        self.embed_calls.append(batch)
        await asyncio.sleep(0)
        if self.fail_when is not None and self.fail_when(batch):
            raise RuntimeError("embedding service unavailable")
        return [hashed_vector(t) for t in batch]

    def close(self) -> None:
        self.loaded = False


class InMemoryStore:
    def __init__(self):
        self.rows: dict[str, IndexEntry] = {}
        self.has_table = False
        self.open_calls = 0
        self.fail_search = False

    async def open(self) -> bool:
        self.open_calls += 1
        return self.has_table

    async def create_table(self, entries: list[IndexEntry]) -> None:
        self.has_table = True
        self.rows = {}
        await self.add(entries)

    async def add(self, entries: list[IndexEntry]) -> None:
        for e in entries:
            assert e.id not in self.rows, f"duplicate id {e.id}"
            self.rows[e.id] = e

    async def delete_source(self, source: str) -> None:
        self.rows = {k: v for k, v in self.rows.items() if v.source != source}

    async def drop_table(self) -> None:
        self.rows = {}
        self.has_table = False

    async def count(self) -> int:
        return len(self.rows)

    async def search(self, vector: list[float], limit: int) -> list[StoredHit]:
        if self.fail_search:
            raise ConnectionError("store unreachable")

        def distance(e: IndexEntry) -> float:
            return 1.0 - sum(a * b for a, b in zip(vector, e.vector))

        ranked = sorted(self.rows.values(), key=distance)[:limit]
        return [
            StoredHit(id=e.id, text=e.text, source=e.source, type=e.type, timestamp=e.timestamp, distance=distance(e))
            for e in ranked
        ]

    def close(self) -> None:
        pass

    def sources(self) -> set[str]:
        return {e.source for e in self.rows.values()}


def write_doc(path: Path, text: str, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def memory_dir(tmp_path: Path) -> Path:
    d = tmp_path / "memories"
    d.mkdir()
    return d


@pytest.fixture
def make_settings(tmp_path: Path, memory_dir: Path):
    def _make(**overrides) -> Settings:
        values = {
            "memory_dir": str(memory_dir),
            "interaction_log": str(tmp_path / "history.jsonl"),
            "index_dir": str(tmp_path / "index"),
            "manifest_file": str(tmp_path / "index_meta.json"),
            "strategy": "semantic",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def rex_corpus(memory_dir: Path) -> Path:
    """A fact document about the dog and one day of history."""
    write_doc(memory_dir / "MEMORY.md", "User's dog is named Rex.\n")
    write_doc(memory_dir / "2024-05-01.md", "User asked about rainy weather yesterday.\n")
    return memory_dir
