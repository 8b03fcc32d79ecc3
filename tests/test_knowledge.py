"""Tests for knowledge-base ingest, retrieval and grounded answers."""

import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from knowledge.ingest import MIN_CHUNK_CHARS, build_kb, chunk_text, make_items
from knowledge.retrieve import NOT_FOUND, KnowledgeBase
from knowledge.schema import KBVector
from receptionist.assistant import GeneralAssistant


class KeywordEmbedder:
    """Embeds text onto three axes: fees, hostel, anything else."""

    enabled = True

    def __init__(self, reply="Fees are 2 lakh per year."):
        self.reply = reply
        self.chat_messages = []

    async def embed(self, texts):
        out = []
        for t in texts:
            t = t.lower()
            out.append([float("fee" in t), float("hostel" in t), 0.1])
        return out

    async def chat(self, messages, temperature=0.2):
        self.chat_messages.append(messages)
        return self.reply


def vector(id, title, text, embedding):
    return KBVector(id=id, title=title, text=text, embedding=embedding)


VECTORS = [
    vector("1", "FAQ - chunk 1", "Tuition fee is 2 lakh per year.", [1.0, 0.0, 0.1]),
    vector("2", "FAQ - chunk 2", "Hostel rooms are twin sharing.", [0.0, 1.0, 0.1]),
    vector("3", "FAQ - chunk 3", "Campus is in Gurgaon.", [0.0, 0.0, 1.0]),
]


class TestChunking:
    def test_short_text_is_one_chunk(self):
        text = "Admissions open in March every year for all programmes."
        assert chunk_text(text) == [text]

    def test_windows_overlap(self):
        text = "".join(str(i % 10) for i in range(2000))
        chunks = chunk_text(text, max_chars=900, overlap=120)
        assert [len(c) for c in chunks] == [900, 900, 440]
        assert chunks[0][-120:] == chunks[1][:120]

    def test_tiny_tail_dropped(self):
        text = "a" * 900 + "b" * 10
        chunks = chunk_text(text, max_chars=900, overlap=0)
        assert chunks == ["a" * 900]

    def test_collapses_blank_lines(self):
        text = "First paragraph of the brochure.\n\n\n\n\nSecond paragraph here."
        assert "\n\n\n" not in chunk_text(text)[0]

    def test_make_items_titles(self):
        items = make_items("Brochure", "x" * (MIN_CHUNK_CHARS + 1))
        assert items[0].title == "Brochure - chunk 1"
        assert items[0].source == "Brochure"

    def test_make_items_rejects_empty(self):
        with pytest.raises(ValueError):
            make_items("Brochure", "too short")


class TestBuild:
    async def test_writes_both_files(self, tmp_path):
        doc = tmp_path / "faq.txt"
        doc.write_text("Tuition fee is 2 lakh per year. Hostel is available for all students.", encoding="utf-8")
        result = await build_kb(doc, out_dir=tmp_path / "kb", llm=KeywordEmbedder())
        assert result["kb_count"] == 1

        rows = json.loads((tmp_path / "kb" / "kb_vectors.json").read_text(encoding="utf-8"))
        assert rows[0]["title"] == "faq - chunk 1"
        assert rows[0]["embedding"] == [1.0, 1.0, 0.1]
        assert "embedding" not in json.loads((tmp_path / "kb" / "kb.json").read_text(encoding="utf-8"))[0]

    async def test_load_round_trip(self, tmp_path):
        doc = tmp_path / "faq.md"
        doc.write_text("Hostel rooms are twin sharing with attached washrooms.", encoding="utf-8")
        await build_kb(doc, out_dir=tmp_path, source_name="Hostel", llm=KeywordEmbedder())
        kb = KnowledgeBase.load(tmp_path / "kb_vectors.json", KeywordEmbedder())
        assert len(kb) == 1
        assert kb.available


class TestKnowledgeBase:
    def test_rank(self):
        kb = KnowledgeBase(VECTORS)
        top = kb.rank([0.0, 1.0, 0.0], k=2)
        assert len(top) == 2
        assert top[0].id == "2"
        assert top[0].score == pytest.approx(1.0 / (1.0 ** 2 + 0.1 ** 2) ** 0.5)

    def test_rank_zero_query(self):
        assert KnowledgeBase(VECTORS).rank([0.0, 0.0, 0.0]) == []

    def test_missing_file(self, tmp_path):
        kb = KnowledgeBase.load(tmp_path / "nope.json", KeywordEmbedder())
        assert len(kb) == 0
        assert not kb.available

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "kb_vectors.json"
        path.write_text("{not json", encoding="utf-8")
        assert len(KnowledgeBase.load(path)) == 0

    async def test_retrieve(self):
        kb = KnowledgeBase(VECTORS, KeywordEmbedder())
        top = await kb.retrieve("what is the fee?")
        assert top[0].id == "1"
        assert len(top) == 3

    async def test_answer_grounded(self):
        llm = KeywordEmbedder()
        kb = KnowledgeBase(VECTORS, llm)
        assert await kb.answer("what is the fee?") == "Fees are 2 lakh per year."
        user = llm.chat_messages[0][1]["content"]
        assert "Source 1: FAQ - chunk 1" in user

    async def test_answer_without_kb(self):
        assert await KnowledgeBase([], KeywordEmbedder()).answer("fees?") == NOT_FOUND


class TestGroundedAssistant:
    async def test_system_prompt_carries_sources(self):
        llm = KeywordEmbedder(reply="Twin sharing.")
        assistant = GeneralAssistant(llm, KnowledgeBase(VECTORS, llm), history_limit=4, name="Admissions")
        assert await assistant.answer("CA1", "tell me about the hostel") == "Twin sharing."
        system = llm.chat_messages[0][0]["content"]
        assert system.startswith("You are Admissions.")
        assert "Source 1: FAQ - chunk 2" in system
        assert NOT_FOUND in system

    async def test_history_is_bounded(self):
        llm = KeywordEmbedder(reply="ok")
        assistant = GeneralAssistant(llm, history_limit=4)
        for i in range(5):
            await assistant.answer("CA1", f"question {i}")
        history = assistant.history("CA1")
        assert len(history) == 4
        assert history[0]["content"] == "question 3"
