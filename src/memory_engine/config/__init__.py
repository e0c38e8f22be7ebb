"""Configuration for memory-engine."""

from memory_engine.config.settings import Settings, get_settings, settings

__all__ = ["settings", "Settings", "get_settings"]
