"""Tests for the webhook, TTS, transcript and admin endpoints."""

import json
import os
import sys
from urllib.parse import parse_qs, urlparse
from xml.etree import ElementTree

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from receptionist.app import create_app, live_events
from receptionist.config import runtime_settings, settings
from receptionist.models import DialogueState, Mode, SessionPatch, SlotPatch

AUTH = {"Authorization": "Bearer secret"}


class FakeTTS:
    def __init__(self, error=None):
        self.error = error
        self.requests = []

    async def synthesize(self, text, lang):
        self.requests.append((text, lang))
        if self.error is not None:
            raise self.error
        return b"ID3fake-mp3"


@pytest.fixture(autouse=True)
def admin_key(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", "secret")
    monkeypatch.setattr(settings, "base_url", "https://voice.example.com")
    monkeypatch.setattr(settings, "agent_number", "")


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def twiml(response):
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    return ElementTree.fromstring(response.content)


def spoken(element):
    """Texts of every <Play> under ``element``, decoded from the /tts URLs."""
    texts = []
    for play in element.iter("Play"):
        query = parse_qs(urlparse(play.text).query)
        texts.append(query["text"][0])
    return texts


def say(client, text, sid="CA1", path="/handle-followup"):
    return client.post(path, data={"CallSid": sid, "SpeechResult": text})


class TestWelcome:
    def test_greets_inside_gather(self, client, service):
        root = twiml(client.post("/welcome?mode=hospital", data={"CallSid": "CA1", "From": "+919876543210"}))
        gather = root.find("Gather")
        assert gather.get("input") == "speech"
        assert gather.get("action") == "https://voice.example.com/handle-input"
        assert gather.get("actionOnEmptyResult") == "true"
        assert gather.get("language") == "en-IN"
        assert spoken(gather)[0].startswith("Hello! You've reached Medanta")
        assert gather.find("Play").text.startswith("https://voice.example.com/tts?")
        assert service.transcripts.meta("CA1")["from"] == "+919876543210"

    def test_general_mode(self, client, service):
        root = twiml(client.post("/welcome?mode=general", data={"CallSid": "CA1"}))
        assert service.session("CA1").mode is Mode.GENERAL
        assert "Welcome to Test Assistant" in spoken(root)[0]

    def test_error_says_and_hangs_up(self, client, service, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("store down")

        monkeypatch.setattr(service, "start_call", boom)
        root = twiml(client.post("/welcome", data={"CallSid": "CA1"}))
        assert root.find("Say").text == "Sorry, something went wrong. Please try again."
        assert root.find("Hangup") is not None


class TestTurns:
    def test_reply_keeps_gathering(self, client):
        root = twiml(say(client, "cardiology", path="/handle-input"))
        gather = root.find("Gather")
        assert gather.get("action") == "https://voice.example.com/handle-followup"
        assert "Dr Arjun Mehta" in spoken(gather)[0]
        assert root.find("Hangup") is None

    def test_empty_speech_reprompts(self, client):
        root = twiml(say(client, ""))
        assert spoken(root.find("Gather")) == ["Sorry, I didn't catch that. Please say it again."]

    def test_repeated_silence_hangs_up(self, client):
        for _ in range(2):
            say(client, "   ")
        root = twiml(say(client, ""))
        assert root.find("Gather") is None
        assert spoken(root) == ["Thank you for calling. Goodbye."]
        assert root.find("Hangup") is not None

    def test_transfer_dials_agent(self, client, monkeypatch):
        monkeypatch.setattr(settings, "agent_number", "+911140000000")
        root = twiml(say(client, "connect me to an agent"))
        assert spoken(root) == ["Sure. I'm connecting you to a human representative now."]
        assert root.find("Dial").text == "+911140000000"

    def test_transfer_without_agent_number(self, client):
        root = twiml(say(client, "connect me to an agent"))
        assert root.find("Dial") is None
        assert spoken(root)[1] == "Transfer is not configured right now. Please try again later."
        assert root.find("Hangup") is not None

    def test_goodbye_on_followup(self, client, service):
        service.start_call("CA1")
        root = twiml(say(client, "no thanks, bye"))
        assert spoken(root) == ["Thank you for calling. Goodbye."]
        assert root.find("Hangup") is not None
        assert "CA1" not in service.store

    def test_goodbye_word_with_symptom_transfers(self, client, service, monkeypatch):
        monkeypatch.setattr(settings, "agent_number", "+911140000000")
        service.start_call("CA1")
        root = twiml(say(client, "thanks, but I have chest pain"))
        assert root.find("Dial").text == "+911140000000"
        assert spoken(root) == ["Sure. I'm connecting you to a human representative now."]
        assert "CA1" in service.store

    def test_goodbye_words_mid_booking_are_a_turn(self, client, service):
        service.store.merge("CA1", SessionPatch(state=DialogueState.COLLECT_NAME))
        root = twiml(say(client, "no"))
        assert root.find("Hangup") is None

    def test_followup_after_confirmation(self, client, service):
        service.store.merge("CA1", SessionPatch(
            state=DialogueState.COLLECT_TIME,
            slots=SlotPatch(patient_name="Rohit", phone="9876543210"),
        ))
        root = twiml(say(client, "tomorrow evening"))
        top_level = [child.tag for child in root]
        assert top_level == ["Play", "Gather"]
        assert "APT-ABC123" in spoken(root)[0]
        assert spoken(root.find("Gather")) == ["Anything else?"]

    def test_hindi_turn_gathers_in_hindi(self, client):
        root = twiml(say(client, "मुझे कार्डियोलॉजी में अपॉइंटमेंट चाहिए"))
        gather = root.find("Gather")
        assert gather.get("language") == "hi-IN"
        play_url = gather.find("Play").text
        assert parse_qs(urlparse(play_url).query)["lang"] == ["hi-IN"]

    def test_turn_error_hangs_up(self, client, service, monkeypatch):
        async def boom(call_id, text):
            raise RuntimeError("engine down")

        monkeypatch.setattr(service, "process_turn", boom)
        root = twiml(say(client, "cardiology"))
        assert spoken(root) == ["Sorry, I faced a technical issue. Please try again."]
        assert root.find("Hangup") is not None

    def test_transcript_recorded(self, client, service):
        say(client, "cardiology")
        roles = [t["role"] for t in service.transcripts.transcript("CA1")]
        assert roles == ["user", "assistant"]


class TestTTS:
    def test_audio(self, client, service):
        service.tts = FakeTTS()
        response = client.get("/tts", params={"text": "नमस्ते", "lang": "hi-IN"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["cache-control"] == "no-store"
        assert response.content == b"ID3fake-mp3"
        assert service.tts.requests == [("नमस्ते", "hi-IN")]

    def test_failure(self, client, service):
        service.tts = FakeTTS(error=RuntimeError("quota"))
        response = client.get("/tts", params={"text": "hi"})
        assert response.status_code == 500
        assert response.text == "TTS failed"


class TestAdmin:
    def test_requires_token(self, client):
        assert client.get("/calls").status_code == 401
        assert client.get("/api/sessions").status_code == 401
        assert client.get("/api/config").status_code == 401

    def test_calls_and_transcript(self, client, service):
        service.start_call("CA1", caller="+919876543210")
        calls = client.get("/calls", headers=AUTH).json()
        assert calls["count"] == 1
        assert calls["calls"][0]["callSid"] == "CA1"
        assert calls["calls"][0]["transcriptCount"] == 1

        body = client.get("/transcript/CA1", headers=AUTH).json()
        assert body["from"] == "+919876543210"
        assert body["transcript"][0]["role"] == "assistant"

    def test_unknown_transcript(self, client):
        response = client.get("/transcript/CA404", headers=AUTH)
        assert response.status_code == 404
        assert response.json()["callSid"] == "CA404"

    def test_summary_not_configured(self, client, service):
        service.start_call("CA1")
        assert client.get("/call-summary/CA1", headers=AUTH).status_code == 503

    def test_summary(self, make_service, scripted_llm):
        service = make_service(llm=scripted_llm(replies=["- caller asked about cardiology"]))
        service.start_call("CA1")
        client = TestClient(create_app(service))
        body = client.get("/call-summary/CA1", headers=AUTH).json()
        assert body["summary"] == "- caller asked about cardiology"

    def test_summary_failure(self, make_service, scripted_llm):
        service = make_service(llm=scripted_llm(error=RuntimeError("rate limited")))
        service.start_call("CA1")
        client = TestClient(create_app(service))
        assert client.get("/call-summary/CA1", headers=AUTH).status_code == 502

    def test_sessions(self, client, service):
        say(client, "cardiology")
        sessions = client.get("/api/sessions", headers=AUTH).json()
        assert sessions["count"] == 1
        one = client.get("/api/sessions/CA1", headers=AUTH).json()
        assert one["state"] == "ASK_BOOK_OR_LIST_MORE"
        assert one["offered_doctor_ids"] == ["D001", "D002"]
        assert client.get("/api/sessions/CA404", headers=AUTH).status_code == 404

    def test_runtime_config(self, client, monkeypatch):
        monkeypatch.setitem(runtime_settings, "polish_enabled", True)
        body = client.post("/api/config", headers=AUTH, json={"polish_enabled": False, "unknown": 1}).json()
        assert body["polish_enabled"] is False
        assert "unknown" not in body
        assert client.get("/api/config", headers=AUTH).json()["polish_enabled"] is False


class TestLiveView:
    def test_ui_escapes_call_sid(self, client):
        response = client.get("/ui/<script>")
        assert response.status_code == 200
        assert "&lt;script&gt;" in response.text
        assert "<script>'" not in response.text

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    async def test_events_stream(self, service):
        service.start_call("CA1")
        disconnected = iter([False, True])

        async def is_disconnected():
            return next(disconnected)

        stream = live_events(service, "CA1", is_disconnected)
        init = json.loads((await stream.__anext__())[len("data: "):])
        assert init["type"] == "init"
        assert len(init["transcript"]) == 1

        service.transcripts.append("CA1", "user", "hello")
        event = json.loads((await stream.__anext__())[len("data: "):])
        assert event["type"] == "transcript"
        assert event["item"]["content"] == "hello"

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert service.hub.get("CA1").subscriber_count == 0
