"""Per-call session store.

Every webhook turn for a call goes through the same discipline:

  1. ``async with store.lock(call_id)`` so two turns of one call never overlap
  2. ``store.get(call_id)`` reads a private copy of the whole session
  3. the dialogue engine computes a ``SessionPatch``
  4. ``store.merge(call_id, patch)`` writes it back

Slot merging is additive: ``merge_slots`` ignores empty incoming values, so
a populated slot can be overwritten by a new value but never erased.
"""

from __future__ import annotations

import asyncio
import logging

from receptionist.models import CallSession, Language, Mode, SessionPatch, SlotPatch, Slots

log = logging.getLogger("receptionist.store")


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def merge_slots(old: Slots, patch: SlotPatch | None) -> Slots:
    """Return ``old`` updated with every non-empty field of ``patch``."""
    if patch is None:
        return old
    update = {}
    for key, value in patch.model_dump().items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        update[key] = value.strip() if isinstance(value, str) else value
    if not update:
        return old
    return old.model_copy(update=update)


class SessionStore:
    """In-process keyed store of ``CallSession`` objects with per-call locks."""

    def __init__(self, default_mode: Mode = Mode.GENERAL) -> None:
        self._default_mode = default_mode
        self._sessions: dict[str, CallSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._sessions

    def lock(self, call_id: str) -> asyncio.Lock:
        """Turn-level mutual exclusion for one call."""
        lock = self._locks.get(call_id)
        if lock is None:
            lock = self._locks[call_id] = asyncio.Lock()
        return lock

    def start(
        self,
        call_id: str,
        mode: Mode | None = None,
        language: Language = Language.AUTO,
    ) -> CallSession:
        """(Re)initialize the session at call start."""
        session = CallSession(
            call_id=call_id,
            mode=mode or self._default_mode,
            language=language,
        )
        self._sessions[call_id] = session
        log.info("Session started: %s mode=%s lang=%s", call_id, session.mode.value, language.value)
        return session.model_copy(deep=True)

    def get(self, call_id: str) -> CallSession:
        """Return a copy of the session, creating it lazily on first access."""
        session = self._sessions.get(call_id)
        if session is None:
            session = self._sessions[call_id] = CallSession(call_id=call_id, mode=self._default_mode)
            log.info("Session created lazily: %s mode=%s", call_id, session.mode.value)
        return session.model_copy(deep=True)

    def merge(self, call_id: str, patch: SessionPatch) -> CallSession:
        """Apply a turn's patch and return a copy of the updated session."""
        current = self._sessions.get(call_id)
        if current is None:
            current = CallSession(call_id=call_id, mode=self._default_mode)

        update: dict = {}
        if patch.state is not None and patch.state is not current.state:
            log.info("FSM advance: %s %s → %s", call_id, current.state.value, patch.state.value)
            update["state"] = patch.state
        if patch.language is not None and patch.language is not Language.AUTO:
            update["language"] = patch.language
        if patch.slots is not None:
            slots = merge_slots(current.slots, patch.slots)
            if slots is not current.slots:
                update["slots"] = slots
                log.debug(
                    "Slots for %s: name=%s phone=%s doctor=%s time=%s",
                    call_id,
                    bool(slots.patient_name),
                    redact_pii(slots.phone or ""),
                    slots.doctor_name,
                    slots.preferred_time,
                )
        if patch.offered_doctor_ids is not None:
            update["offered_doctor_ids"] = list(patch.offered_doctor_ids)
        if patch.silence_retries is not None:
            update["silence_retries"] = patch.silence_retries

        merged = current.model_copy(update=update)
        self._sessions[call_id] = merged
        return merged.model_copy(deep=True)

    def discard(self, call_id: str) -> None:
        """Forget a finished call."""
        self._sessions.pop(call_id, None)
        self._locks.pop(call_id, None)
        log.info("Session discarded: %s", call_id)

    def all(self) -> list[CallSession]:
        return [s.model_copy(deep=True) for s in self._sessions.values()]
