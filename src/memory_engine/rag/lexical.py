"""TF-IDF / cosine-similarity search over the whole memory corpus.

Document frequencies are recomputed from the full corpus on every query and term
vectors are never cached, so a search is O(corpus). Fine for a personal notes
folder, not for anything large.
"""

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from memory_engine.rag.corpus import (
    list_memory_documents,
    read_interaction_log,
    split_paragraphs,
    split_sentences,
)
from memory_engine.schemas import Match

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3
DEFAULT_MIN_SCORE = 0.1

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if", "in",
        "into", "is", "it", "no", "not", "of", "on", "or", "such", "that", "the",
        "their", "then", "there", "these", "they", "this", "to", "was", "will",
        "with", "you", "your", "i", "me", "my", "we", "us", "our",
    }
)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

TermVector = dict[str, float]


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop short tokens and stop words."""
    cleaned = _NON_ALNUM.sub("", text.lower())
    return [t for t in cleaned.split() if len(t) > 2 and t not in STOP_WORDS]


def term_frequencies(tokens: list[str]) -> dict[str, float]:
    if not tokens:
        return {}
    total = len(tokens)
    return {term: count / total for term, count in Counter(tokens).items()}


def document_frequencies(corpus: Iterable[list[str]]) -> Counter:
    df: Counter = Counter()
    for tokens in corpus:
        df.update(set(tokens))
    return df


def inverse_document_frequencies(df: Counter, n_docs: int, query_tokens: Iterable[str] = ()) -> dict[str, float]:
    """idf = ln(N / df); query terms never seen in the corpus get ln(N / 1)."""
    idf = {term: math.log(n_docs / count) for term, count in df.items()}
    for term in query_tokens:
        if term not in idf:
            idf[term] = math.log(n_docs)
    return idf


def vectorize(tokens: list[str], idf: dict[str, float]) -> TermVector:
    return {term: tf * idf.get(term, 0.0) for term, tf in term_frequencies(tokens).items()}


def magnitude(vec: TermVector) -> float:
    return math.sqrt(sum(w * w for w in vec.values()))


def cosine_similarity(a: TermVector, b: TermVector) -> float:
    """Cosine of two sparse vectors; 0.0 if either has zero magnitude."""
    mag_a = magnitude(a)
    mag_b = magnitude(b)
    if mag_a == 0 or mag_b == 0:
        return 0.0
    if len(b) < len(a):
        a, b = b, a
    dot = sum(w * b[term] for term, w in a.items() if term in b)
    return dot / (mag_a * mag_b)


@dataclass
class LexicalDocument:
    """A paragraph or sentence with its tokens."""

    text: str
    source: str
    type: str
    tokens: list[str] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, source: str, memory_type: str) -> "LexicalDocument":
        return cls(text=text, source=source, type=memory_type, tokens=tokenize(text))


def load_corpus(memory_dir: Path, log_path: Path, fact_document: str) -> list[LexicalDocument]:
    """Read every memory document (by paragraph) and every logged message (by sentence)."""
    documents: list[LexicalDocument] = []
    for doc in list_memory_documents(memory_dir, fact_document):
        try:
            content = doc.read_text()
        except OSError as e:
            logger.debug("rag.lexical: skipped %s: %s", doc.source, e)
            continue
        for paragraph in split_paragraphs(content):
            documents.append(LexicalDocument.from_text(paragraph, doc.source, doc.type))

    log_name = Path(log_path).name
    for record in read_interaction_log(log_path).records:
        for message in record.messages:
            for sentence in split_sentences(message.content):
                documents.append(LexicalDocument.from_text(sentence, log_name, "history"))

    logger.debug("rag.lexical: loaded corpus of %d units", len(documents))
    return documents


class LexicalIndex:
    """Scores a query against a fixed corpus snapshot."""

    def __init__(
        self,
        documents: list[LexicalDocument],
        top_k: int = DEFAULT_TOP_K,
        min_score: float = DEFAULT_MIN_SCORE,
    ):
        self.documents = documents
        self.top_k = top_k
        self.min_score = min_score

    def score(self, query: str) -> list[Match]:
        """Every document with its cosine score, in corpus order."""
        query_tokens = tokenize(query)
        if not query_tokens or not self.documents:
            return []
        df = document_frequencies(doc.tokens for doc in self.documents)
        idf = inverse_document_frequencies(df, len(self.documents), query_tokens)
        query_vec = vectorize(query_tokens, idf)
        return [
            Match(
                text=doc.text,
                source=doc.source,
                type=doc.type,
                score=cosine_similarity(query_vec, vectorize(doc.tokens, idf)),
            )
            for doc in self.documents
        ]

    def search(self, query: str) -> list[Match]:
        """Matches above min_score, best first, at most top_k."""
        scored = [m for m in self.score(query) if m.score > self.min_score]
        scored.sort(key=lambda m: m.score, reverse=True)
        results = scored[: self.top_k]
        logger.debug("rag.lexical: %d/%d units above %.2f", len(scored), len(self.documents), self.min_score)
        return results
