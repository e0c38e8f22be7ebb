"""LangChain BaseRetriever wrapping the memory service."""

import asyncio
import logging
from typing import Any

from langchain_core.callbacks import (
    AsyncCallbackManagerForRetrieverRun,
    CallbackManagerForRetrieverRun,
)
from langchain_core.documents import Document
from langchain_core.retrievers import BaseRetriever
from pydantic import ConfigDict

from memory_engine.memory.service import MemoryService, get_memory_service
from memory_engine.schemas import Match, Turn

logger = logging.getLogger(__name__)


def _to_document(match: Match) -> Document:
    return Document(
        page_content=match.text,
        metadata={"source": match.source, "type": match.type, "score": match.score},
    )


class MemoryRetriever(BaseRetriever):
    """LangChain retriever over personal memories.

    The query string is treated as a single user turn. Results come back
    fact-first, like get_memories(), as Document objects with source/type/score
    metadata. Inside a running event loop use ainvoke(); invoke() there logs a
    warning and returns no documents.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    service: MemoryService | None = None
    """Service to query; defaults to the process-wide one."""

    def _service(self) -> MemoryService:
        return self.service or get_memory_service()

    async def _aget_relevant_documents(
        self, query: str, *, run_manager: AsyncCallbackManagerForRetrieverRun, **kwargs: Any
    ) -> list[Document]:
        results = await self._service().retrieve([Turn(role="user", content=query)])
        logger.info("MemoryRetriever: retrieved %d documents for query", len(results))
        return [_to_document(m) for m in results]

    def _get_relevant_documents(
        self, query: str, *, run_manager: CallbackManagerForRetrieverRun, **kwargs: Any
    ) -> list[Document]:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            # asyncio.run() cannot nest; callers inside a loop must use ainvoke()
            logger.warning("MemoryRetriever: invoke() called inside a running event loop, use ainvoke(); returning no documents")
            return []
        results = asyncio.run(self._service().retrieve([Turn(role="user", content=query)]))
        logger.info("MemoryRetriever: retrieved %d documents for query", len(results))
        return [_to_document(m) for m in results]
