"""Call service: one entry point per webhook turn.

``CallService.process_turn`` is the boundary between the telephony
transport and the personas.  It serializes turns per call, applies the
caller's language preference, records the transcript, dispatches to the
hospital dialogue or the general assistant, and merges the resulting
session patch.
"""

from __future__ import annotations

import logging

from knowledge.retrieve import KnowledgeBase
from receptionist.assistant import GeneralAssistant, summarize_call
from receptionist.config import runtime_settings, settings as default_settings
from receptionist.hospital.dialogue import HospitalDialogue
from receptionist.hospital.directory import Directory
from receptionist.hospital.extractors import (
    detect_language_preference,
    is_end_of_call,
    looks_like_medical_advice,
    wants_human,
)
from receptionist.live import LiveHub
from receptionist.llm import LLMClient
from receptionist.models import CallSession, DialogueState, Mode, SessionPatch, TurnResult
from receptionist.models.session import COLLECTION_STATES
from receptionist.polish import Polisher
from receptionist.store import SessionStore
from receptionist.transcripts import TranscriptLog
from receptionist.tts import ElevenLabsSynthesizer

log = logging.getLogger("receptionist.calls")

GENERAL_GREETING = "Hello! Welcome to {name}. How can I help you today?"
GENERAL_FOLLOWUP = "Anything else you would like to know?"
GENERAL_NO_SPEECH = "Sorry, I didn't catch that. Please say it again."
GENERAL_GOODBYE = "Thank you for calling. Goodbye."


class CallService:
    def __init__(
        self,
        store: SessionStore,
        dialogue: HospitalDialogue,
        assistant: GeneralAssistant,
        transcripts: TranscriptLog,
        hub: LiveHub,
        polisher: Polisher | None = None,
        llm: LLMClient | None = None,
        tts: ElevenLabsSynthesizer | None = None,
        max_silence_retries: int = 2,
        assistant_name: str = "",
    ) -> None:
        self.store = store
        self.dialogue = dialogue
        self.assistant = assistant
        self.transcripts = transcripts
        self.hub = hub
        self.llm = llm
        self.tts = tts
        self._respond = (polisher or Polisher()).wrap(dialogue.respond)
        self._max_silence_retries = max_silence_retries
        self._assistant_name = assistant_name or default_settings.assistant_name

    # ── Call lifecycle ──

    def start_call(
        self,
        call_id: str,
        mode: Mode | None = None,
        caller: str | None = None,
        callee: str | None = None,
    ) -> tuple[CallSession, str]:
        """Reset the call's session and return it with the greeting text."""
        session = self.store.start(call_id, mode=mode)
        self.assistant.discard(call_id)
        self.transcripts.remember(
            call_id, **{"from": caller, "to": callee, "mode": session.mode.value, "lang": session.language_tag}
        )
        if session.mode is Mode.HOSPITAL:
            greeting = self.dialogue.greeting(session).text
        else:
            greeting = GENERAL_GREETING.format(name=self._assistant_name)
        self.transcripts.append(call_id, "assistant", greeting)
        return session, greeting

    def session(self, call_id: str) -> CallSession:
        return self.store.get(call_id)

    # ── Turns ──

    async def process_turn(self, call_id: str, text: str) -> TurnResult:
        async with self.store.lock(call_id):
            session = self.store.get(call_id)
            text = str(text or "").strip()

            if session.mode is Mode.HOSPITAL:
                preference = detect_language_preference(text)
                if preference is not None and preference is not session.language:
                    session = self.store.merge(call_id, SessionPatch(language=preference))
                    self.transcripts.remember(call_id, lang=session.language_tag)
                    log.info("Language for %s → %s", call_id, session.language_tag)

            self.transcripts.append(call_id, "user", text)

            if session.mode is Mode.HOSPITAL:
                outcome = await self._respond(session, text)
                patch = outcome.patch.model_copy(update={"silence_retries": 0})
                self.store.merge(call_id, patch)
                result = TurnResult(spoken_text=outcome.prompt.text, transfer=outcome.transfer)
            else:
                answer = await self.assistant.answer(call_id, text)
                self.store.merge(call_id, SessionPatch(silence_retries=0))
                result = TurnResult(spoken_text=answer)

            self.transcripts.append(call_id, "assistant", result.spoken_text)
            return result

    async def no_speech(self, call_id: str) -> tuple[str, bool]:
        """Re-prompt for an empty recognition result; ``True`` means hang up."""
        async with self.store.lock(call_id):
            session = self.store.get(call_id)
            retries = session.silence_retries + 1
            self.store.merge(call_id, SessionPatch(silence_retries=retries))
            give_up = retries > self._max_silence_retries
            if session.mode is Mode.HOSPITAL:
                composer = self.dialogue.composer(session)
                text = composer.goodbye() if give_up else composer.no_speech()
            else:
                text = GENERAL_GOODBYE if give_up else GENERAL_NO_SPEECH
            log.info("No speech on %s (retry %d/%d)", call_id, retries, self._max_silence_retries)
            return text, give_up

    def is_goodbye(self, call_id: str, text: str) -> bool:
        """End-of-call phrase outside an in-progress booking."""
        session = self.store.get(call_id)
        if session.mode is Mode.HOSPITAL and session.state in COLLECTION_STATES:
            return False
        if wants_human(text) or looks_like_medical_advice(text):
            return False
        return is_end_of_call(text)

    def goodbye(self, call_id: str) -> str:
        session = self.store.get(call_id)
        if session.mode is Mode.HOSPITAL:
            return self.dialogue.composer(session).goodbye()
        return GENERAL_GOODBYE

    def followup_prompt(self, call_id: str) -> str | None:
        """Short "anything else?" after an answer, or None when a question is pending."""
        if not runtime_settings.get("followup_prompt_enabled"):
            return None
        session = self.store.get(call_id)
        if session.mode is Mode.GENERAL:
            return GENERAL_FOLLOWUP
        if session.state is DialogueState.CONFIRMED:
            return self.dialogue.composer(session).anything_else()
        return None

    def transfer_unavailable(self, call_id: str) -> str:
        return self.dialogue.composer(self.store.get(call_id)).transfer_unavailable()

    def technical_issue(self, call_id: str) -> str:
        return self.dialogue.composer(self.store.get(call_id)).technical_issue()

    def language_tag(self, call_id: str) -> str:
        return self.store.get(call_id).language_tag

    def end_call(self, call_id: str) -> None:
        self.store.discard(call_id)
        self.assistant.discard(call_id)

    # ── Transcripts ──

    async def summarize(self, call_id: str) -> str | None:
        """LLM summary of the call, or None when no LLM is configured."""
        if self.llm is None or not self.llm.enabled:
            return None
        return await summarize_call(self.llm, self.transcripts.as_text(call_id))


def build_service(settings=default_settings) -> CallService:
    """Wire the production collaborators from settings."""
    hub = LiveHub()
    llm = LLMClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        embedding_model=settings.openai_embedding_model,
    )
    kb = KnowledgeBase.load(settings.kb_vectors_path, llm)
    return CallService(
        store=SessionStore(default_mode=Mode.parse(settings.mode) or Mode.GENERAL),
        dialogue=HospitalDialogue(
            directory=Directory(location=settings.hospital_location),
            dayparts=settings.hindi_dayparts,
        ),
        assistant=GeneralAssistant(llm, kb, history_limit=settings.history_limit),
        transcripts=TranscriptLog(settings.transcripts_path, hub, settings.recent_calls_limit),
        hub=hub,
        polisher=Polisher(llm),
        llm=llm,
        tts=ElevenLabsSynthesizer(api_key=settings.elevenlabs_api_key),
        max_silence_retries=settings.max_silence_retries,
        assistant_name=settings.assistant_name,
    )
