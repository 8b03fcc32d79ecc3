"""Best-effort LLM paraphrase of deterministic hospital prompts.

The polisher wraps the dialogue engine's respond function.  It only ever
sees informational prompts: anything that asks for booking details, carries
confirmation data or hands the caller off is spoken verbatim.  Any failure,
refusal or paraphrase that loses a fact falls back to the raw text.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import re
from typing import Awaitable, Callable

from receptionist.config import runtime_settings, settings
from receptionist.hospital.composer import Prompt, PromptKind
from receptionist.hospital.dialogue import DialogueOutcome
from receptionist.llm import LLMClient
from receptionist.models import CallSession, Language

log = logging.getLogger("receptionist.polish")

SKIP_KINDS = frozenset({PromptKind.COLLECT, PromptKind.CONFIRMATION, PromptKind.HANDOFF})

REFUSAL_HINTS = ["i can't", "i cant", "cannot", "personal details", "privacy", "not able"]

_DOCTOR_NAME_RE = re.compile(r"\bDr\.? [A-Z][a-z]+(?: [A-Z][a-z]+)*")
_DIGITS_RE = re.compile(r"\d+")
_LATIN_RE = re.compile(r"[A-Za-z][A-Za-z.'-]*")

RespondFn = Callable[[CallSession, str], DialogueOutcome]
AsyncRespondFn = Callable[[CallSession, str], Awaitable[DialogueOutcome]]


def keeps_facts(raw: str, polished: str, hindi: bool = False) -> bool:
    """True if ``polished`` is a safe stand-in for ``raw``."""
    if not polished:
        return False
    lower = polished.lower()
    if any(h in lower for h in REFUSAL_HINTS):
        return False
    if any(name not in polished for name in _DOCTOR_NAME_RE.findall(raw)):
        return False
    if any(run not in polished for run in _DIGITS_RE.findall(raw)):
        return False
    if hindi:
        allowed = set(_LATIN_RE.findall(raw))
        if any(token not in allowed for token in _LATIN_RE.findall(polished)):
            return False
    return True


class Polisher:
    """Capability-gated paraphraser: no API key or toggle off means raw text."""

    def __init__(self, llm: LLMClient | None = None) -> None:
        self._llm = llm

    @property
    def enabled(self) -> bool:
        return bool(self._llm and self._llm.enabled and runtime_settings.get("polish_enabled"))

    def _system_prompt(self, hindi: bool) -> str:
        style = (
            "Reply in friendly Hindi written in Devanagari like a hospital front-desk. "
            "Keep doctor names exactly as given in English letters. 1-2 short sentences. Do NOT refuse."
            if hindi else
            "Reply in friendly English like a hospital front-desk. 1-2 short sentences. Do NOT refuse."
        )
        return (
            f"You are a hospital appointment and routing voice assistant for {settings.hospital_name}. "
            "Rephrase the message you are given without adding or removing any facts. "
            "No medical advice. Never refuse. " + style
        )

    async def polish(self, prompt: Prompt, language_tag: str) -> str:
        if prompt.kind in SKIP_KINDS or not self.enabled:
            return prompt.text

        hindi = language_tag == Language.HINDI.value
        try:
            out = await self._llm.chat(
                [
                    {"role": "system", "content": self._system_prompt(hindi)},
                    {"role": "user", "content": prompt.text},
                ],
                temperature=0.2,
            )
        except Exception as e:
            log.warning("Polish failed, using raw prompt: %s", e)
            return prompt.text

        if not keeps_facts(prompt.text, out, hindi=hindi):
            log.info("Polish rejected, using raw prompt")
            return prompt.text
        return out

    def wrap(self, respond: RespondFn) -> AsyncRespondFn:
        """Decorate a deterministic respond function with polishing."""

        @functools.wraps(respond)
        async def polished(session: CallSession, utterance: str) -> DialogueOutcome:
            outcome = respond(session, utterance)
            text = await self.polish(outcome.prompt, session.language_tag)
            if text == outcome.prompt.text:
                return outcome
            return dataclasses.replace(outcome, prompt=Prompt(text, outcome.prompt.kind))

        return polished
