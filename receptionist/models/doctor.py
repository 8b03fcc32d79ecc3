"""Pydantic model for a directory doctor."""

from pydantic import BaseModel


class Doctor(BaseModel):
    """Static reference entry in the hospital directory.

    ``name`` is always rendered in Latin script, whatever the caller's
    language; ``aliases`` lets Devanagari transcripts match the same doctor.
    """

    id: str
    name: str
    department: str
    location: str
    next_slots: list[str] = []
    aliases: list[str] = []
