"""Freshness manifest: last-indexed modification time per source.

Persists to a JSON file next to the vector index. An entry is only advanced after
the source's chunks are embedded and stored, so a crash in between just means the
source is indexed again on the next pass.
"""

import json
import logging
from pathlib import Path
from typing import Iterable

from memory_engine.rag.corpus import SourceDocument

logger = logging.getLogger(__name__)


class Manifest:
    """Maps source name -> mtime of the version currently in the index."""

    def __init__(self, file_path: Path | str):
        self._path = Path(file_path)
        self._data: dict[str, float] = {}

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load manifest from file. Unreadable or corrupt files start empty."""
        if not self._path.exists():
            logger.debug("Manifest: no file at %s, starting fresh", self._path)
            self._data = {}
            return
        try:
            raw = json.loads(self._path.read_text())
            self._data = {str(k): float(v) for k, v in raw.items()}
            logger.debug("Manifest: loaded %d source(s) from %s", len(self._data), self._path)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Manifest: could not load from %s, reindexing everything: %s", self._path, e)
            self._data = {}

    def save(self) -> None:
        """Persist manifest atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True))
        tmp.replace(self._path)
        logger.debug("Manifest: saved %d source(s) to %s", len(self._data), self._path)

    def get(self, source: str) -> float | None:
        return self._data.get(source)

    def is_dirty(self, source: str, mtime: float) -> bool:
        recorded = self._data.get(source)
        return recorded is None or recorded < mtime

    def dirty_sources(self, sources: Iterable[SourceDocument]) -> list[SourceDocument]:
        return [s for s in sources if self.is_dirty(s.source, s.mtime)]

    def mark_indexed(self, source: str, mtime: float) -> None:
        """Record mtime for source; an older mtime never replaces a newer one."""
        recorded = self._data.get(source)
        if recorded is None or mtime > recorded:
            self._data[source] = mtime

    def forget(self, source: str) -> None:
        self._data.pop(source, None)

    def clear(self) -> None:
        self._data = {}

    def as_dict(self) -> dict[str, float]:
        return dict(self._data)

    def __contains__(self, source: str) -> bool:
        return source in self._data

    def __len__(self) -> int:
        return len(self._data)
