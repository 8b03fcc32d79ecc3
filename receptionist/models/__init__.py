"""Data models for the receptionist layer."""

from .doctor import Doctor
from .session import (
    CallSession,
    DialogueState,
    Language,
    Mode,
    SessionPatch,
    SlotPatch,
    Slots,
    TurnResult,
)

__all__ = [
    "CallSession",
    "DialogueState",
    "Doctor",
    "Language",
    "Mode",
    "SessionPatch",
    "SlotPatch",
    "Slots",
    "TurnResult",
]
