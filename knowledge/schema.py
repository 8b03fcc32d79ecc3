"""Pydantic models for knowledge-base chunks and their embeddings."""

from pydantic import BaseModel


class KBItem(BaseModel):
    id: str
    title: str
    text: str
    source: str = ""

    def to_embedding_text(self) -> str:
        """Text sent to the embedding model: title line, then the chunk."""
        return f"{self.title}\n{self.text}"


class KBVector(KBItem):
    embedding: list[float]


class ScoredItem(BaseModel):
    id: str
    title: str
    text: str
    score: float
