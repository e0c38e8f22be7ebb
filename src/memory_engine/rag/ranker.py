"""Order raw matches fact-first and tag them with their provenance."""

from typing import Iterable

from memory_engine.schemas import Match, RetrievalResult

FACT_LABEL = "[CORE MEMORY]"
HISTORY_LABEL = "[History: {source}]"


def rank(matches: Iterable[Match], top_k: int) -> RetrievalResult:
    """Stable partition: facts before history, upstream order kept inside each class."""
    matches = list(matches)
    facts = [m for m in matches if m.type == "fact"]
    history = [m for m in matches if m.type != "fact"]
    return (facts + history)[: max(top_k, 0)]


def format_match(match: Match) -> str:
    label = FACT_LABEL if match.type == "fact" else HISTORY_LABEL.format(source=match.source)
    return f"{label}\n{match.text}"


def format_results(results: RetrievalResult) -> list[str]:
    return [format_match(m) for m in results]
