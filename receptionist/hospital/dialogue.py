"""Hospital appointment dialogue — the per-call booking state machine.

``HospitalDialogue.respond(session, utterance)`` is a pure function of its
inputs: it reads a private copy of the session, never touches the store,
and returns the prompt to speak plus a ``SessionPatch`` for the caller to
merge.  It is total: every utterance in every reachable state yields a
prompt.

Flow per turn:

  1. escalation (wants a human / sounds like a request for medical advice)
     short-circuits everything with a handoff and ``transfer=True``
  2. opportunistic capture fills empty name / phone / time slots from
     whatever the caller volunteered
  3. the handler for the current state decides what to ask next

Every "about to ask for X" step goes through ``_advance``, which checks the
slots first, so nothing already known is asked for twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from receptionist.hospital.composer import Composer, Prompt, new_confirmation_id
from receptionist.hospital.directory import DIRECTORY, Directory
from receptionist.hospital.extractors import (
    detect_department,
    doctor_query,
    extract_name,
    extract_phone,
    extract_preferred_time,
    looks_like_booking_intent,
    looks_like_medical_advice,
    match_doctors,
    parse_option_number,
    wants_human,
)
from receptionist.models import CallSession, DialogueState, Doctor, SessionPatch, SlotPatch, Slots
from receptionist.store import merge_slots

log = logging.getLogger("receptionist.dialogue")

MAX_OPTIONS = 3


@dataclass
class DialogueOutcome:
    prompt: Prompt
    transfer: bool = False
    patch: SessionPatch = field(default_factory=SessionPatch)


class _TurnContext:
    """Accumulates one turn's changes on top of the session snapshot."""

    def __init__(self, session: CallSession, composer: Composer) -> None:
        self.session = session
        self.say = composer
        self.slots: dict[str, str] = {}
        self.state: Optional[DialogueState] = None
        self.offered: Optional[list[str]] = None

    def known(self, key: str) -> Optional[str]:
        return self.slots.get(key) or getattr(self.session.slots, key)

    def fill(self, key: str, value: Optional[str]) -> None:
        """Set ``key`` only if it is still empty."""
        if value and not self.known(key):
            self.slots[key] = value

    def put(self, key: str, value: Optional[str]) -> None:
        """Overwrite ``key`` with a non-empty value."""
        if value:
            self.slots[key] = value

    def goto(self, state: DialogueState) -> None:
        self.state = state

    def offer(self, doctors: list[Doctor]) -> None:
        self.offered = [d.id for d in doctors]

    def view(self) -> Slots:
        return merge_slots(self.session.slots, SlotPatch(**self.slots))

    def outcome(self, prompt: Prompt, transfer: bool = False) -> DialogueOutcome:
        patch = SessionPatch(
            state=self.state,
            slots=SlotPatch(**self.slots) if self.slots else None,
            offered_doctor_ids=self.offered,
        )
        return DialogueOutcome(prompt=prompt, transfer=transfer, patch=patch)


class HospitalDialogue:
    """Appointment booking flow over a doctor directory."""

    def __init__(
        self,
        directory: Directory = DIRECTORY,
        id_factory: Callable[[], str] = new_confirmation_id,
        dayparts: list | None = None,
    ) -> None:
        self.directory = directory
        self._new_id = id_factory
        self._dayparts = dayparts
        self._handlers = {
            DialogueState.NEW: self._on_new,
            DialogueState.ASK_BOOK_OR_LIST_MORE: self._on_pick,
            DialogueState.COLLECT_NAME: self._on_name,
            DialogueState.COLLECT_PHONE: self._on_phone,
            DialogueState.COLLECT_TIME: self._on_time,
            DialogueState.CONFIRMED: self._on_confirmed,
        }

    def composer(self, session: CallSession) -> Composer:
        return Composer(hindi=session.is_hindi, dayparts=self._dayparts)

    def greeting(self, session: CallSession) -> Prompt:
        return self.composer(session).greeting()

    def respond(self, session: CallSession, utterance: str) -> DialogueOutcome:
        ctx = _TurnContext(session, self.composer(session))
        text = str(utterance or "").strip()

        if not text:
            return ctx.outcome(self._reprompt(ctx))

        if wants_human(text) or looks_like_medical_advice(text):
            log.info("Escalating %s from %s", session.call_id, session.state.value)
            return ctx.outcome(ctx.say.handoff(), transfer=True)

        self._capture(ctx, text)
        prompt = self._handlers[session.state](ctx, text)
        return ctx.outcome(prompt)

    # ── Cross-cutting ──

    def _capture(self, ctx: _TurnContext, text: str) -> None:
        ctx.fill("patient_name", extract_name(text))
        ctx.fill("phone", extract_phone(text))
        ctx.fill("preferred_time", extract_preferred_time(text))

    def _reprompt(self, ctx: _TurnContext) -> Prompt:
        state = ctx.session.state
        if state is DialogueState.ASK_BOOK_OR_LIST_MORE:
            return ctx.say.pick_reprompt(len(ctx.session.offered_doctor_ids) or MAX_OPTIONS)
        if state is DialogueState.COLLECT_NAME:
            return ctx.say.ask_name(retry=True)
        if state is DialogueState.COLLECT_PHONE:
            return ctx.say.ask_phone(retry=True)
        if state is DialogueState.COLLECT_TIME:
            return ctx.say.ask_time()
        if state is DialogueState.CONFIRMED:
            return ctx.say.already_confirmed(ctx.view())
        return ctx.say.generic_help()

    # ── State handlers ──

    def _on_new(self, ctx: _TurnContext, text: str) -> Prompt:
        resolved = self._resolve(ctx, text)
        if resolved is not None:
            return resolved
        if looks_like_booking_intent(text):
            return ctx.say.ask_department_or_doctor()
        return ctx.say.generic_help()

    def _on_pick(self, ctx: _TurnContext, text: str) -> Prompt:
        offered = [
            d for d in (self.directory.get(i) for i in ctx.session.offered_doctor_ids) if d
        ]

        matches = match_doctors(doctor_query(text) or text, self.directory)
        if len(matches) > 1 and offered:
            narrowed = [d for d in matches if d in offered]
            matches = narrowed or matches
        if len(matches) == 1:
            return self._choose(ctx, matches[0])
        if matches:
            return self._list_candidates(ctx, matches)

        number = parse_option_number(text, len(offered))
        if number is not None:
            return self._choose(ctx, offered[number - 1])

        # Caller switched department instead of picking
        resolved = self._resolve(ctx, text)
        if resolved is not None:
            return resolved
        return ctx.say.pick_reprompt(len(offered) or MAX_OPTIONS)

    def _on_name(self, ctx: _TurnContext, text: str) -> Prompt:
        if ctx.known("patient_name"):
            return self._advance(ctx)

        if doctor_query(text):
            matches = match_doctors(doctor_query(text), self.directory)
            if len(matches) == 1:
                return self._choose(ctx, matches[0])

        remainder = text
        spoken_time = extract_preferred_time(text)
        if spoken_time:
            remainder = remainder.replace(spoken_time, " ")
        name = extract_name(remainder, expecting=True)
        if not name:
            return ctx.say.ask_name(retry=True)
        ctx.fill("patient_name", name)
        return self._advance(ctx)

    def _on_phone(self, ctx: _TurnContext, text: str) -> Prompt:
        if ctx.known("phone"):
            return self._advance(ctx)
        return ctx.say.ask_phone(retry=True)

    def _on_time(self, ctx: _TurnContext, text: str) -> Prompt:
        # The time stated now replaces anything captured earlier
        ctx.put("preferred_time", extract_preferred_time(text) or text)
        return self._advance(ctx)

    def _on_confirmed(self, ctx: _TurnContext, text: str) -> Prompt:
        return ctx.say.already_confirmed(ctx.view())

    # ── Resolution / progression ──

    def _resolve(self, ctx: _TurnContext, text: str) -> Optional[Prompt]:
        """Doctor reference or department in ``text``, or None if neither."""
        department = detect_department(text, self.directory.departments)

        query = doctor_query(text)
        if query is not None:
            matches = match_doctors(query, self.directory)
            if len(matches) == 1:
                return self._choose(ctx, matches[0])
            if matches:
                return self._list_candidates(ctx, matches)
            if department is None:
                return ctx.say.doctor_not_found()

        if department is None:
            return None

        doctors = self.directory.by_department(department)
        if not doctors:
            return ctx.say.no_doctors(department)
        shown = doctors[:MAX_OPTIONS]
        ctx.put("department", department)
        ctx.offer(shown)
        ctx.goto(DialogueState.ASK_BOOK_OR_LIST_MORE)
        return ctx.say.doctor_options(department, shown)

    def _list_candidates(self, ctx: _TurnContext, matches: list[Doctor]) -> Prompt:
        shown = matches[:MAX_OPTIONS]
        ctx.offer(shown)
        ctx.goto(DialogueState.ASK_BOOK_OR_LIST_MORE)
        return ctx.say.doctor_candidates(shown)

    def _choose(self, ctx: _TurnContext, doctor: Doctor) -> Prompt:
        ctx.put("doctor_name", doctor.name)
        ctx.put("department", doctor.department)
        ctx.offer([])
        return ctx.say.doctor_intro(doctor) + self._advance(ctx)

    def _advance(self, ctx: _TurnContext) -> Prompt:
        """Ask for the first missing booking detail, or confirm."""
        if not ctx.known("patient_name"):
            ctx.goto(DialogueState.COLLECT_NAME)
            return ctx.say.ask_name()
        if not ctx.known("phone"):
            ctx.goto(DialogueState.COLLECT_PHONE)
            return ctx.say.ask_phone()
        if not ctx.known("preferred_time"):
            ctx.goto(DialogueState.COLLECT_TIME)
            return ctx.say.ask_time()
        return self._confirm(ctx)

    def _confirm(self, ctx: _TurnContext) -> Prompt:
        ctx.put("confirmation_id", self._new_id())
        ctx.goto(DialogueState.CONFIRMED)
        slots = ctx.view()
        log.info(
            "Booking confirmed: %s id=%s doctor=%s",
            ctx.session.call_id, slots.confirmation_id, slots.doctor_name or slots.department,
        )
        return ctx.say.confirmation(slots)
