"""Append-only call transcripts with best-effort JSON persistence.

Layout of the persisted file::

    {
      "<call_sid>": {
        "meta": {"ts": ..., "from": ..., "to": ..., "mode": ..., "lang": ...},
        "transcript": [{"ts": ..., "role": "user", "content": ...}, ...]
      }
    }

The dialogue engine never reads transcripts back; they exist for the
call listing, summary and live viewer endpoints.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from receptionist.live import LiveHub, TranscriptEvent

log = logging.getLogger("receptionist.transcripts")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TranscriptLog:
    """Per-call transcript lines and metadata, mirrored to a JSON file."""

    def __init__(
        self,
        path: str | Path | None = None,
        hub: LiveHub | None = None,
        recent_limit: int = 20,
    ) -> None:
        self._path = Path(path) if path else None
        self._hub = hub
        self._recent_limit = recent_limit
        self._calls: dict[str, dict] = self._load()
        self._recent: list[str] = []

    def _load(self) -> dict[str, dict]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
            return json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            log.warning("Could not load transcripts from %s: %s", self._path, e)
            return {}

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.write_text(json.dumps(self._calls, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            log.error("Transcript persist failed: %s", e)

    def _entry(self, call_sid: str) -> dict:
        return self._calls.setdefault(call_sid, {"meta": {}, "transcript": []})

    def remember(self, call_sid: str, **meta) -> None:
        """Merge call metadata and move the call to the front of the recent list."""
        if not call_sid:
            return
        entry = self._entry(call_sid)
        entry["meta"] = {"ts": _now(), **entry["meta"], **{k: v for k, v in meta.items() if v is not None}}
        if call_sid in self._recent:
            self._recent.remove(call_sid)
        self._recent.insert(0, call_sid)
        del self._recent[self._recent_limit:]
        self._save()

    def append(self, call_sid: str, role: str, content: str) -> TranscriptEvent | None:
        if not call_sid:
            return None
        item: TranscriptEvent = {"ts": _now(), "role": role, "content": content}
        self._entry(call_sid)["transcript"].append(item)
        self._save()
        if self._hub is not None:
            self._hub.publish(call_sid, {"type": "transcript", "callSid": call_sid, "item": item})
        return item

    def transcript(self, call_sid: str) -> list[TranscriptEvent]:
        entry = self._calls.get(call_sid)
        return list(entry["transcript"]) if entry else []

    def meta(self, call_sid: str) -> dict:
        entry = self._calls.get(call_sid)
        return dict(entry["meta"]) if entry else {}

    def recent_calls(self) -> list[dict]:
        """Most recent calls first: this process's calls, then persisted ones."""
        sids = list(dict.fromkeys(self._recent + list(reversed(self._calls))))
        return [
            {
                "callSid": sid,
                **self.meta(sid),
                "transcriptCount": len(self._calls.get(sid, {}).get("transcript", [])),
            }
            for sid in sids[:self._recent_limit]
        ]

    def as_text(self, call_sid: str, max_chars: int = 6000) -> str:
        """``ROLE: content`` lines, keeping only the last ``max_chars`` characters."""
        text = "\n".join(f"{t['role'].upper()}: {t['content']}" for t in self.transcript(call_sid))
        return text[-max_chars:]
