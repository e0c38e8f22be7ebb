"""Pydantic settings for memory-engine configuration."""

import logging
import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables (MEMORY_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory of *.md memory documents. Missing directory = empty corpus.
    memory_dir: str = "memories"
    # The curated long-term notes document inside memory_dir; tagged "fact".
    fact_document: str = "MEMORY.md"
    # Append-only JSONL interaction log ({timestamp, messages}).
    interaction_log: str = "history.jsonl"

    # Vector store directory and per-source freshness manifest.
    index_dir: str = "data/index"
    manifest_file: str = "data/index_meta.json"
    collection_name: str = "memories"

    # sentence-transformers model ID for the semantic strategy.
    embedding_model: str = "all-MiniLM-L6-v2"

    # Which backend answers get_memories(): lexical (tf-idf) or semantic (vectors).
    strategy: Literal["lexical", "semantic"] = "semantic"

    # Sliding-window chunker. 1500 chars is roughly 400 tokens.
    chunk_size: int = 1500
    chunk_overlap: int = 200
    min_chunk_length: int = 50

    embed_batch_size: int = 10
    semantic_top_k: int = 5
    lexical_top_k: int = 3
    lexical_min_score: float = 0.1

    # Lexical corpus reload cache.
    corpus_cache_seconds: float = 5.0

    # `memory-engine watch` resync interval.
    resync_interval_minutes: int = 15

    def memory_path(self) -> Path:
        return Path(self.memory_dir).expanduser()

    def log_path(self) -> Path:
        return Path(self.interaction_log).expanduser()

    def index_path(self) -> Path:
        return Path(self.index_dir).expanduser()

    def manifest_path(self) -> Path:
        return Path(self.manifest_file).expanduser()


def get_settings() -> Settings:
    """Get application settings."""
    s = Settings()
    if s.chunk_overlap >= s.chunk_size:
        logger.warning(
            "settings: chunk_overlap (%d) >= chunk_size (%d); chunker will advance one char at a time",
            s.chunk_overlap,
            s.chunk_size,
        )
    return s


settings = get_settings()
