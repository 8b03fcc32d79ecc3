"""Pydantic models tracking one call's conversation through the dialogue engine."""

from __future__ import annotations

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Mode(str, Enum):
    GENERAL = "general"
    HOSPITAL = "hospital"

    @classmethod
    def parse(cls, value: str | None) -> "Mode | None":
        """Map a query/config value to a mode ("education" is the legacy name of general)."""
        value = (value or "").strip().lower()
        if value in ("general", "education"):
            return cls.GENERAL
        if value == "hospital":
            return cls.HOSPITAL
        return None


class Language(str, Enum):
    AUTO = "auto"
    ENGLISH = "en-IN"
    HINDI = "hi-IN"


class DialogueState(str, Enum):
    NEW = "NEW"
    ASK_BOOK_OR_LIST_MORE = "ASK_BOOK_OR_LIST_MORE"
    COLLECT_NAME = "COLLECT_NAME"
    COLLECT_PHONE = "COLLECT_PHONE"
    COLLECT_TIME = "COLLECT_TIME"
    CONFIRMED = "CONFIRMED"


# States in which the caller is in the middle of giving booking details
COLLECTION_STATES = frozenset({
    DialogueState.ASK_BOOK_OR_LIST_MORE,
    DialogueState.COLLECT_NAME,
    DialogueState.COLLECT_PHONE,
    DialogueState.COLLECT_TIME,
})


class Slots(BaseModel):
    """Booking data gathered so far. Populated incrementally, never cleared."""

    patient_name: Optional[str] = None
    phone: Optional[str] = None
    doctor_name: Optional[str] = None
    department: Optional[str] = None
    preferred_time: Optional[str] = None
    confirmation_id: Optional[str] = None


class SlotPatch(BaseModel):
    """Partial slot update. ``None`` or blank fields leave the slot untouched."""

    patient_name: Optional[str] = None
    phone: Optional[str] = None
    doctor_name: Optional[str] = None
    department: Optional[str] = None
    preferred_time: Optional[str] = None
    confirmation_id: Optional[str] = None


class CallSession(BaseModel):
    """Mutable per-call state, owned by the session store."""

    call_id: str
    mode: Mode = Mode.HOSPITAL
    state: DialogueState = DialogueState.NEW
    language: Language = Language.AUTO
    slots: Slots = Field(default_factory=Slots)
    offered_doctor_ids: list[str] = []
    silence_retries: int = 0
    started_at: float = Field(default_factory=time.time)

    @property
    def language_tag(self) -> str:
        """BCP-47 tag used for speech recognition and synthesis."""
        if self.mode is Mode.GENERAL:
            return "en-US"
        if self.language is Language.HINDI:
            return Language.HINDI.value
        return Language.ENGLISH.value

    @property
    def is_hindi(self) -> bool:
        return self.mode is Mode.HOSPITAL and self.language is Language.HINDI


class SessionPatch(BaseModel):
    """Changes computed by one turn, merged into the store at turn end."""

    state: Optional[DialogueState] = None
    language: Optional[Language] = None
    slots: Optional[SlotPatch] = None
    offered_doctor_ids: Optional[list[str]] = None
    silence_retries: Optional[int] = None


class TurnResult(BaseModel):
    """What the transport speaks back, and whether to hand the call to a human."""

    spoken_text: str
    transfer: bool = False
