"""RAG – memory chunking, indexing and retrieval.

Chunking (chunker.chunk_text): sliding window with word-boundary trimming and overlap.
Lexical (lexical.LexicalIndex): tf-idf cosine over the whole corpus, rebuilt per query.
Semantic (semantic.SemanticIndex): sentence-transformers vectors in ChromaDB, synced
incrementally per source using the freshness manifest.
Ranking (ranker.rank): facts before history, top-k, provenance tags.
"""

from memory_engine.rag.chunker import MemoryChunk, chunk_text
from memory_engine.rag.lexical import LexicalIndex, cosine_similarity, tokenize
from memory_engine.rag.ranker import format_match, format_results, rank

__all__ = [
    "MemoryChunk",
    "chunk_text",
    "LexicalIndex",
    "cosine_similarity",
    "tokenize",
    "rank",
    "format_match",
    "format_results",
    "SemanticIndex",
    "SentenceTransformerEmbedder",
    "ChromaVectorStore",
    "MemoryRetriever",
]


def __getattr__(name: str):
    """Lazy import for heavy deps (sentence-transformers, chromadb, langchain)."""
    if name == "SemanticIndex":
        from memory_engine.rag.semantic import SemanticIndex
        return SemanticIndex
    if name == "SentenceTransformerEmbedder":
        from memory_engine.rag.embeddings import SentenceTransformerEmbedder
        return SentenceTransformerEmbedder
    if name == "ChromaVectorStore":
        from memory_engine.rag.vector_store import ChromaVectorStore
        return ChromaVectorStore
    if name == "MemoryRetriever":
        from memory_engine.rag.retriever import MemoryRetriever
        return MemoryRetriever
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
