"""Cosine-similarity retrieval and grounded answers over the knowledge base."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np

from knowledge.schema import KBVector, ScoredItem
from receptionist.llm import LLMClient

log = logging.getLogger("knowledge.retrieve")

TOP_K = 3

NOT_FOUND = "I may not have that information in my knowledge base yet."

ANSWER_RULES = """RULES:
- Answer ONLY using the provided Sources.
- Keep answers short (2-3 sentences).
- If the answer is not in the Sources, say:
"{not_found}"
"""


class KnowledgeBase:
    """In-memory embedding matrix over ``KBVector`` rows."""

    def __init__(self, vectors: list[KBVector], llm: LLMClient | None = None) -> None:
        self._items = list(vectors)
        self._llm = llm
        if self._items:
            matrix = np.array([v.embedding for v in self._items], dtype=np.float32)
            norms = np.linalg.norm(matrix, axis=1, keepdims=True)
            self._matrix = matrix / np.where(norms == 0, 1.0, norms)
        else:
            self._matrix = np.zeros((0, 0), dtype=np.float32)

    @classmethod
    def load(cls, path: str | Path, llm: LLMClient | None = None) -> "KnowledgeBase":
        """Read a vectors file; a missing or unreadable file gives an empty KB."""
        path = Path(path)
        if not path.exists():
            log.warning("Knowledge base vectors not found at %s", path)
            return cls([], llm)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.error("Could not read knowledge base %s: %s", path, e)
            return cls([], llm)
        vectors = [KBVector(**row) for row in raw]
        log.info("Knowledge base loaded: %d chunks from %s", len(vectors), path)
        return cls(vectors, llm)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def available(self) -> bool:
        return bool(self._items) and self._llm is not None and self._llm.enabled

    def rank(self, query_vector: list[float], k: int = TOP_K) -> list[ScoredItem]:
        """Top-``k`` items by cosine similarity, best first."""
        if not self._items:
            return []
        q = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(q)
        if norm == 0:
            return []
        scores = self._matrix @ (q / norm)
        order = np.argsort(-scores)[:k]
        return [
            ScoredItem(
                id=self._items[i].id,
                title=self._items[i].title,
                text=self._items[i].text,
                score=float(scores[i]),
            )
            for i in order
        ]

    async def retrieve(self, question: str, k: int = TOP_K) -> list[ScoredItem]:
        [query_vector] = await self._llm.embed([question])
        return self.rank(query_vector, k)

    async def answer(self, question: str, persona: str = "an admissions assistant") -> str:
        """Answer from the top sources only; ``NOT_FOUND`` when nothing is retrievable."""
        if not self.available:
            return NOT_FOUND
        top = await self.retrieve(question)
        if not top:
            return NOT_FOUND
        context = "\n\n".join(f"Source {i}: {s.title}\n{s.text}" for i, s in enumerate(top, start=1))
        system = f"You are {persona}.\n\n" + ANSWER_RULES.format(not_found=NOT_FOUND)
        out = await self._llm.chat(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": f"User question: {question}\n\nSOURCES:\n{context}"},
            ],
            temperature=0.2,
        )
        return out or NOT_FOUND
