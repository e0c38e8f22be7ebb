"""Typed records exchanged between the engine and its collaborators."""

from memory_engine.schemas.memory_schemas import (
    LogRecord,
    Match,
    MemoryType,
    RetrievalResult,
    Turn,
)

__all__ = ["LogRecord", "Match", "MemoryType", "RetrievalResult", "Turn"]
