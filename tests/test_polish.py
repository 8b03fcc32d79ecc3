"""Tests for the prompt polisher and its fact-preservation guard."""

import os
import sys
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from receptionist.config import runtime_settings
from receptionist.hospital.composer import Prompt, PromptKind
from receptionist.hospital.dialogue import HospitalDialogue
from receptionist.models import CallSession, DialogueState, Language, Mode
from receptionist.polish import Polisher, keeps_facts


class FakeLLM:
    def __init__(self, reply="", enabled=True, error=None):
        self.enabled = enabled
        self.chat = AsyncMock(return_value=reply, side_effect=error)
        self.embed = AsyncMock(return_value=[])


INFO = Prompt("Sure. Dr Neha Sharma is in Cardiology. Next available: Tomorrow 12 PM.", PromptKind.INFO)


class TestKeepsFacts:
    def test_accepts_faithful_paraphrase(self):
        assert keeps_facts(INFO.text, "Dr Neha Sharma from Cardiology is free tomorrow at 12 PM.")

    def test_rejects_dropped_doctor(self):
        assert not keeps_facts(INFO.text, "The cardiologist is free tomorrow at 12 PM.")

    def test_rejects_dropped_digits(self):
        assert not keeps_facts(INFO.text, "Dr Neha Sharma is free tomorrow around noon.")

    def test_rejects_refusal(self):
        assert not keeps_facts(INFO.text, "I can't share Dr Neha Sharma details at 12.")

    def test_rejects_empty(self):
        assert not keeps_facts(INFO.text, "")

    def test_hindi_rejects_new_latin_words(self):
        raw = "ज़रूर। Dr Neha Sharma कार्डियोलॉजी विभाग में हैं।"
        assert keeps_facts(raw, "Dr Neha Sharma कार्डियोलॉजी में उपलब्ध हैं।", hindi=True)
        assert not keeps_facts(raw, "Dr Neha Sharma Cardiology में हैं।", hindi=True)


class TestPolisher:
    async def test_polishes_info_prompt(self):
        llm = FakeLLM(reply="Dr Neha Sharma in Cardiology has a slot tomorrow at 12 PM.")
        text = await Polisher(llm).polish(INFO, "en-IN")
        assert text == "Dr Neha Sharma in Cardiology has a slot tomorrow at 12 PM."
        messages = llm.chat.call_args.args[0]
        assert messages[1] == {"role": "user", "content": INFO.text}

    @pytest.mark.parametrize("kind", [PromptKind.COLLECT, PromptKind.CONFIRMATION, PromptKind.HANDOFF])
    async def test_verbatim_kinds_skip_llm(self, kind):
        llm = FakeLLM(reply="something else")
        prompt = Prompt("Please tell me your 10-digit mobile number.", kind)
        assert await Polisher(llm).polish(prompt, "en-IN") == prompt.text
        llm.chat.assert_not_called()

    async def test_llm_error_falls_back(self):
        llm = FakeLLM(error=RuntimeError("boom"))
        assert await Polisher(llm).polish(INFO, "en-IN") == INFO.text

    async def test_lossy_paraphrase_falls_back(self):
        llm = FakeLLM(reply="A heart doctor is free soon.")
        assert await Polisher(llm).polish(INFO, "en-IN") == INFO.text

    async def test_disabled_without_key(self):
        llm = FakeLLM(reply="x", enabled=False)
        polisher = Polisher(llm)
        assert polisher.enabled is False
        assert await polisher.polish(INFO, "en-IN") == INFO.text
        llm.chat.assert_not_called()

    async def test_disabled_without_client(self):
        assert Polisher(None).enabled is False
        assert await Polisher(None).polish(INFO, "en-IN") == INFO.text

    async def test_runtime_toggle(self, monkeypatch):
        monkeypatch.setitem(runtime_settings, "polish_enabled", False)
        llm = FakeLLM(reply="Dr Neha Sharma in Cardiology, tomorrow 12 PM.")
        assert await Polisher(llm).polish(INFO, "en-IN") == INFO.text
        llm.chat.assert_not_called()

    async def test_hindi_system_prompt(self):
        llm = FakeLLM(reply="")
        await Polisher(llm).polish(INFO, "hi-IN")
        system = llm.chat.call_args.args[0][0]["content"]
        assert "Devanagari" in system


class TestWrap:
    async def test_wraps_dialogue_and_keeps_patch(self):
        llm = FakeLLM(reply="Glad to help. We have these cardiology doctors: 1. Dr Arjun Mehta  2. Dr Neha Sharma. Say 1 or 2.")
        respond = Polisher(llm).wrap(HospitalDialogue().respond)
        session = CallSession(call_id="CA1", mode=Mode.HOSPITAL)
        outcome = await respond(session, "cardiology")
        assert outcome.prompt.text.startswith("Glad to help.")
        assert outcome.patch.state is DialogueState.ASK_BOOK_OR_LIST_MORE
        assert outcome.patch.offered_doctor_ids == ["D001", "D002"]

    async def test_collect_prompt_reaches_caller_verbatim(self):
        llm = FakeLLM(reply="Who is the patient, Dr Neha Sharma 12 6?")
        respond = Polisher(llm).wrap(HospitalDialogue().respond)
        session = CallSession(call_id="CA1", mode=Mode.HOSPITAL, language=Language.ENGLISH)
        outcome = await respond(session, "Dr Neha Sharma")
        assert outcome.prompt.text.endswith("To book, please tell me the patient's full name.")
        llm.chat.assert_not_called()
