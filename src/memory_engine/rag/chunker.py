"""Sliding-window chunker for memory documents."""

import time
from dataclasses import dataclass, field

DEFAULT_CHUNK_SIZE = 1500  # ~400 tokens
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MIN_CHUNK_LENGTH = 50


@dataclass
class MemoryChunk:
    """A retrieval unit cut from one source document."""

    text: str
    source: str
    type: str
    id: str
    timestamp: float = field(default_factory=time.time)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _window_end(text: str, start: int, end: int, chunk_size: int) -> int:
    """Pull end back to the last newline (else space) in the second half of the window."""
    floor = start + int(chunk_size * 0.5)
    cut = text.rfind("\n", floor, end + 1)
    if cut == -1:
        cut = text.rfind(" ", floor, end + 1)
    return cut if cut > start else end


def chunk_text(
    text: str,
    source: str,
    memory_type: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    min_length: int = DEFAULT_MIN_CHUNK_LENGTH,
    timestamp: float | None = None,
) -> list[MemoryChunk]:
    """Split text into overlapping chunks of at most chunk_size characters.

    Text that fits in one window becomes a single chunk regardless of length.
    Longer text is windowed; windows are trimmed back to a word boundary when one
    exists in the second half, and chunks shorter than min_length are dropped.
    Ids are "{source}-{seq}" over the emitted chunks.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not text or not text.strip():
        return []

    normalized = normalize_newlines(text)
    ts = time.time() if timestamp is None else timestamp

    if len(normalized) <= chunk_size:
        return [MemoryChunk(text=normalized.strip(), source=source, type=memory_type, id=f"{source}-0", timestamp=ts)]

    chunks: list[MemoryChunk] = []
    length = len(normalized)
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _window_end(normalized, start, end, chunk_size)

        content = normalized[start:end].strip()
        if len(content) >= min_length:
            chunks.append(
                MemoryChunk(
                    text=content,
                    source=source,
                    type=memory_type,
                    id=f"{source}-{len(chunks)}",
                    timestamp=ts,
                )
            )

        if end >= length:
            break
        # Always move forward, even when overlap swallows the whole window
        start = max(start + 1, end - overlap)

    return chunks
