"""Minimal TwiML builder on ElementTree.

    resp = VoiceResponse()
    gather = resp.gather(action=url, language="en-IN")
    gather.play(tts_url)
    resp.to_xml()
"""

from __future__ import annotations

from urllib.parse import urlencode
from xml.etree.ElementTree import Element, SubElement, tostring


def _attr(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class _Verb:
    def __init__(self, element: Element) -> None:
        self._el = element

    def play(self, url: str) -> "_Verb":
        SubElement(self._el, "Play").text = url
        return self

    def say(self, text: str, language: str | None = None) -> "_Verb":
        say = SubElement(self._el, "Say")
        if language:
            say.set("language", language)
        say.text = text
        return self


class Gather(_Verb):
    pass


class VoiceResponse(_Verb):
    def __init__(self) -> None:
        super().__init__(Element("Response"))

    def gather(self, **attrs) -> Gather:
        el = SubElement(self._el, "Gather")
        for key, value in attrs.items():
            if value is not None:
                el.set(key, _attr(value))
        return Gather(el)

    def dial(self, number: str) -> "VoiceResponse":
        SubElement(self._el, "Dial").text = number
        return self

    def hangup(self) -> "VoiceResponse":
        SubElement(self._el, "Hangup")
        return self

    def to_xml(self) -> str:
        return tostring(self._el, encoding="unicode", xml_declaration=True)


def tts_url(base_url: str, text: str, lang: str) -> str:
    """URL of the ``/tts`` endpoint that renders ``text`` in ``lang``."""
    return f"{base_url.rstrip('/')}/tts?{urlencode({'lang': lang, 'text': text})}"
