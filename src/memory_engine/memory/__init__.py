"""Memory service and freshness manifest."""

__all__ = [
    "Manifest",
    "MemoryInitError",
    "MemoryService",
    "ServiceState",
    "get_memories",
    "get_memory_service",
    "invalidate_memory_cache",
]


def __getattr__(name: str):
    """Lazy import so rag.semantic can use the manifest without pulling in the service."""
    if name == "Manifest":
        from memory_engine.memory.manifest import Manifest
        return Manifest
    if name in __all__:
        from memory_engine.memory import service
        return getattr(service, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
