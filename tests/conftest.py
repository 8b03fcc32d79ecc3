"""Shared fixtures: an in-memory call service with a scripted LLM."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from receptionist.assistant import GeneralAssistant
from receptionist.calls import CallService
from receptionist.hospital.dialogue import HospitalDialogue
from receptionist.live import LiveHub
from receptionist.models import Mode
from receptionist.polish import Polisher
from receptionist.store import SessionStore
from receptionist.transcripts import TranscriptLog


class ScriptedLLM:
    """Stand-in for LLMClient: records every chat call and replies in order."""

    def __init__(self, replies=None, enabled=True, delay=0.0, error=None):
        self.enabled = enabled
        self.replies = list(replies or [])
        self.delay = delay
        self.error = error
        self.calls = []

    async def chat(self, messages, temperature=0.2):
        self.calls.append([dict(m) for m in messages])
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""

    async def embed(self, texts):
        return [[1.0, 0.0] for _ in texts]


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def make_service():
    """Factory for a CallService over in-memory collaborators."""

    def build(mode=Mode.HOSPITAL, llm=None, polish=False, max_silence_retries=2):
        llm = llm or ScriptedLLM(enabled=False)
        hub = LiveHub()
        return CallService(
            store=SessionStore(default_mode=mode),
            dialogue=HospitalDialogue(id_factory=lambda: "APT-ABC123"),
            assistant=GeneralAssistant(llm, history_limit=10, name="Test Assistant"),
            transcripts=TranscriptLog(hub=hub),
            hub=hub,
            polisher=Polisher(llm if polish else None),
            llm=llm,
            max_silence_retries=max_silence_retries,
            assistant_name="Test Assistant",
        )

    return build
