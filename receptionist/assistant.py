"""General Q&A persona: short conversational answers grounded on the knowledge base."""

from __future__ import annotations

import logging
from collections import deque

from knowledge.retrieve import ANSWER_RULES, NOT_FOUND, KnowledgeBase
from receptionist.config import settings
from receptionist.llm import LLMClient

log = logging.getLogger("receptionist.assistant")

NO_ANSWER = "Sorry, I could not answer that."

SUMMARY_PROMPT = "Summarize this call in 5 bullet points with next steps."


class GeneralAssistant:
    """Answers questions with a bounded per-call conversation history."""

    def __init__(
        self,
        llm: LLMClient,
        kb: KnowledgeBase | None = None,
        history_limit: int | None = None,
        name: str | None = None,
    ) -> None:
        self._llm = llm
        self._kb = kb
        self._history_limit = history_limit or settings.history_limit
        self._name = name or settings.assistant_name
        self._histories: dict[str, deque] = {}

    def history(self, call_id: str) -> list[dict]:
        return list(self._histories.get(call_id, ()))

    def _remember(self, call_id: str, role: str, content: str) -> None:
        history = self._histories.setdefault(call_id, deque(maxlen=self._history_limit))
        history.append({"role": role, "content": content})

    def discard(self, call_id: str) -> None:
        self._histories.pop(call_id, None)

    async def _system_prompt(self, question: str) -> str:
        system = (
            f"You are {self._name}. Answer clearly in 1-3 sentences. "
            "Maintain conversation context."
        )
        if self._kb is None or not self._kb.available:
            return system
        top = await self._kb.retrieve(question)
        if not top:
            return system
        sources = "\n\n".join(f"Source {i}: {s.title}\n{s.text}" for i, s in enumerate(top, start=1))
        return f"{system}\n\n{ANSWER_RULES.format(not_found=NOT_FOUND)}\nSOURCES:\n{sources}"

    async def answer(self, call_id: str, question: str) -> str:
        if not self._llm.enabled:
            log.warning("General assistant has no LLM configured")
            return NO_ANSWER
        try:
            messages = [{"role": "system", "content": await self._system_prompt(question)}]
            messages += self.history(call_id)
            messages.append({"role": "user", "content": question})
            answer = await self._llm.chat(messages, temperature=0.3) or NO_ANSWER
        except Exception as e:
            log.error("Answer failed for %s: %s", call_id, e)
            return NO_ANSWER

        self._remember(call_id, "user", question)
        self._remember(call_id, "assistant", answer)
        return answer


async def summarize_call(llm: LLMClient, transcript_text: str) -> str:
    """Five-bullet summary of a call transcript."""
    return await llm.chat(
        [
            {"role": "system", "content": SUMMARY_PROMPT},
            {"role": "user", "content": transcript_text},
        ],
        temperature=0.2,
    )
