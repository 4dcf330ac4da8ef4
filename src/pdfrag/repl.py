from __future__ import annotations

from typing import Callable, Protocol
import sys

from pdfrag.llm import LLMClientError
from pdfrag.services.rag.chain import ChainResponse
from pdfrag.services.rag.embedding_client import EmbeddingClientError
from pdfrag.services.rag.vector_store import StoreError

PROMPT = "Ask> "


class QuestionAnswerer(Protocol):
    def invoke(self, question: str) -> ChainResponse: ...


def _format_response(response: ChainResponse) -> str:
    lines = [response.answer]
    names = list(dict.fromkeys(hit.document_name for hit in response.sources))
    if names:
        lines.append("")
        lines.append(f"Sources: {', '.join(names)}")
    return "\n".join(lines)


def run_query_loop(
    chain: QuestionAnswerer,
    *,
    read_line: Callable[[str], str] | None = None,
) -> int:
    """Read questions until end of input, answering each one in turn.

    Returns the number of questions answered. A failed question is reported and
    the loop keeps going.
    """
    reader = read_line or input
    answered = 0
    while True:
        try:
            question = reader(f"\n{PROMPT}")
        except (EOFError, KeyboardInterrupt):
            print("", flush=True)
            return answered

        if not question.strip():
            continue

        print("", flush=True)
        try:
            response = chain.invoke(question)
        except (LLMClientError, EmbeddingClientError, StoreError) as exc:
            print(f"[pdfrag] query failed: {exc}", file=sys.stderr, flush=True)
            continue

        print(_format_response(response), flush=True)
        answered += 1
