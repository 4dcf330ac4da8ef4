from __future__ import annotations

from dataclasses import dataclass, field

from pdfrag.llm import LLMClient
from pdfrag.services.rag.prompt import build_messages, format_context
from pdfrag.services.rag.query import Retriever
from pdfrag.services.rag.types import QueryHit


@dataclass
class ConversationMemory:
    turns: list[tuple[str, str]] = field(default_factory=list)

    def remember(self, question: str, answer: str) -> None:
        self.turns.append((question, answer))


@dataclass(frozen=True)
class ChainResponse:
    answer: str
    sources: tuple[QueryHit, ...]
    model: str


class ConversationalRetrieverChain:
    """Retrieve context for a question, ask the LLM, and remember the turn."""

    def __init__(
        self,
        *,
        retriever: Retriever,
        llm_client: LLMClient,
        memory: ConversationMemory | None = None,
    ) -> None:
        self._retriever = retriever
        self._llm_client = llm_client
        self._memory = memory if memory is not None else ConversationMemory()

    @property
    def memory(self) -> ConversationMemory:
        return self._memory

    def invoke(self, question: str) -> ChainResponse:
        normalized = question.strip()
        if not normalized:
            raise ValueError("question must not be empty")

        hits = self._retriever.retrieve(normalized)
        messages = build_messages(
            question=normalized,
            context=format_context(hits),
            history=self._memory.turns,
        )
        result = self._llm_client.generate_answer(messages=messages)

        self._memory.remember(normalized, result.answer)
        return ChainResponse(answer=result.answer, sources=tuple(hits), model=result.model)
