"""memory-engine: retrieval of long-term notes and conversation history for LLM prompts."""

__version__ = "0.1.0"
