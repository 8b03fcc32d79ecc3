"""Per-call transcript broadcaster for the live call viewer.

Every transcript line appended for a call is pushed to each connected
subscriber's asyncio.Queue; the ``/live/{call_sid}`` endpoint drains one
queue per open Server-Sent Events stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TypedDict

log = logging.getLogger("receptionist.live")


class TranscriptEvent(TypedDict):
    ts: str
    role: str          # user | assistant
    content: str


class TranscriptBroadcaster:
    """Fan-out of one call's transcript lines, one bounded queue per subscriber."""

    def __init__(self, call_sid: str, maxsize: int = 200) -> None:
        self._call_sid = call_sid
        self._maxsize = maxsize
        self._subscribers: list[asyncio.Queue[dict]] = []

    def subscribe(self) -> asyncio.Queue[dict]:
        q: asyncio.Queue[dict] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(q)
        log.info("Live subscriber added for %s (total: %d)", self._call_sid, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[dict]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
        log.info("Live subscriber removed for %s (total: %d)", self._call_sid, len(self._subscribers))

    def publish(self, event: dict) -> None:
        for q in self._subscribers:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest event to make room
                q.get_nowait()
                q.put_nowait(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class LiveHub:
    """Registry of broadcasters keyed by call id."""

    def __init__(self) -> None:
        self._broadcasters: dict[str, TranscriptBroadcaster] = {}

    def get(self, call_sid: str) -> TranscriptBroadcaster:
        """Get or create the broadcaster for a call."""
        if call_sid not in self._broadcasters:
            self._broadcasters[call_sid] = TranscriptBroadcaster(call_sid)
        return self._broadcasters[call_sid]

    def publish(self, call_sid: str, event: dict) -> None:
        broadcaster = self._broadcasters.get(call_sid)
        if broadcaster is not None:
            broadcaster.publish(event)

    def release(self, call_sid: str, q: asyncio.Queue[dict]) -> None:
        """Unsubscribe ``q`` and drop the broadcaster once nobody listens."""
        broadcaster = self._broadcasters.get(call_sid)
        if broadcaster is None:
            return
        broadcaster.unsubscribe(q)
        if broadcaster.subscriber_count == 0:
            del self._broadcasters[call_sid]
