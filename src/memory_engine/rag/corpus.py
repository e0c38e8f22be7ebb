"""Enumerate memory sources: the markdown memory store and the JSONL interaction log."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from memory_engine.schemas import LogRecord

logger = logging.getLogger(__name__)

MEMORY_SUFFIX = ".md"
MIN_UNIT_LENGTH = 10

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_HEADER_LINE = re.compile(r"^#+\s.*$", re.MULTILINE)
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


@dataclass
class SourceDocument:
    """One indexable source with its modification time.

    kind is "document" for a memory-store file and "log" for the interaction log.
    """

    source: str
    type: str
    path: Path
    mtime: float
    kind: str = "document"

    def read_text(self) -> str:
        if self.kind == "log":
            return render_log(read_interaction_log(self.path).records)
        return self.path.read_text(encoding="utf-8", errors="replace")


@dataclass
class LogParseResult:
    """Parsed interaction log plus how many lines were skipped as malformed."""

    records: list[LogRecord] = field(default_factory=list)
    skipped: int = 0


def is_memory_document(path: Path) -> bool:
    """Return True for visible markdown files."""
    return path.suffix.lower() == MEMORY_SUFFIX and not path.name.startswith(".")


def memory_type_for(name: str, fact_document: str) -> str:
    return "fact" if name == fact_document else "history"


def list_memory_documents(memory_dir: Path, fact_document: str) -> list[SourceDocument]:
    """Stat every memory document. A missing directory is an empty store."""
    memory_dir = Path(memory_dir)
    if not memory_dir.is_dir():
        logger.debug("corpus: memory dir %s missing, treating as empty", memory_dir)
        return []
    docs: list[SourceDocument] = []
    for path in sorted(memory_dir.iterdir()):
        if not path.is_file() or not is_memory_document(path):
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.debug("corpus: skipped %s: %s", path.name, e)
            continue
        docs.append(
            SourceDocument(
                source=path.name,
                type=memory_type_for(path.name, fact_document),
                path=path,
                mtime=mtime,
            )
        )
    return docs


def read_interaction_log(log_path: Path) -> LogParseResult:
    """Parse the JSONL interaction log, skipping malformed lines one by one."""
    result = LogParseResult()
    log_path = Path(log_path)
    if not log_path.is_file():
        return result
    for lineno, line in enumerate(log_path.read_text(encoding="utf-8", errors="replace").splitlines(), 1):
        if not line.strip():
            continue
        try:
            result.records.append(LogRecord.model_validate_json(line))
        except ValidationError:
            result.skipped += 1
            logger.debug("corpus: skipped malformed log line %d in %s", lineno, log_path.name)
    if result.skipped:
        logger.info("corpus: %d malformed line(s) skipped in %s", result.skipped, log_path.name)
    return result


def render_log(records: list[LogRecord]) -> str:
    """Render log records as plain text, one "role: content" line per message."""
    blocks = []
    for record in records:
        lines = [f"{m.role}: {m.content.strip()}" for m in record.messages if m.content.strip()]
        if lines:
            blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def log_source(log_path: Path) -> SourceDocument | None:
    log_path = Path(log_path)
    if not log_path.is_file():
        return None
    return SourceDocument(
        source=log_path.name,
        type="history",
        path=log_path,
        mtime=log_path.stat().st_mtime,
        kind="log",
    )


def list_sources(memory_dir: Path, log_path: Path, fact_document: str) -> list[SourceDocument]:
    """All sources for the semantic index: memory documents, then the interaction log."""
    sources = list_memory_documents(memory_dir, fact_document)
    log = log_source(log_path)
    if log is not None:
        sources.append(log)
    return sources


def split_paragraphs(text: str) -> list[str]:
    """Blank-line paragraphs with markdown headers removed; rules and short bits dropped."""
    out = []
    for block in _PARAGRAPH_SPLIT.split(text.replace("\r\n", "\n")):
        clean = _HEADER_LINE.sub("", block).strip()
        if len(clean) > MIN_UNIT_LENGTH and not clean.startswith("---"):
            out.append(clean)
    return out


def split_sentences(text: str) -> list[str]:
    parts = _SENTENCE.findall(text) or [text]
    return [p.strip() for p in parts if len(p.strip()) > MIN_UNIT_LENGTH]
