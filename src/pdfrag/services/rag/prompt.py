from __future__ import annotations

from typing import Sequence

from pdfrag.services.rag.types import QueryHit

SYSTEM_PROMPT = "You are a helpful assistant, helping new users of Infinite Campus use it."

HUMAN_TEMPLATE = """
Use the following pieces of context to answer the question at the end.
If you don't know the answer, just say that you don't know, don't try to make up an answer.

{context}

Question:{question}
Helpful Answer:
"""

NO_CONTEXT = "No relevant context found in the document store."


def format_context(hits: Sequence[QueryHit]) -> str:
    return "\n\n".join(f"[{hit.document_name}]\n{hit.content}" for hit in hits) or NO_CONTEXT


def render_question(*, question: str, context: str) -> str:
    return HUMAN_TEMPLATE.format(context=context, question=question)


def build_messages(
    *,
    question: str,
    context: str,
    history: Sequence[tuple[str, str]] = (),
) -> list[dict[str, str]]:
    """Chat messages for one turn: system prompt, prior turns, then the templated question."""
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for previous_question, previous_answer in history:
        messages.append({"role": "user", "content": previous_question})
        messages.append({"role": "assistant", "content": previous_answer})
    messages.append({"role": "user", "content": render_question(question=question, context=context)})
    return messages
