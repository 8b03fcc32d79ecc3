"""Entity extractors and intent predicates over raw utterance text.

Every function here is pure and conservative: when in doubt it returns
``None``/``False``.  Slots are never cleared within a call, so a wrong
guess would stick for the rest of the conversation, whereas a miss only
costs a re-prompt.

Keyword sets mix English, romanized Hindi (Hinglish) and Devanagari.
Matching is containment on word boundaries, so "ent" does not fire inside
"appointment" and "दिल" does not fire inside "दिल्ली".
"""

from __future__ import annotations

import re
import string
import unicodedata
from functools import lru_cache

from receptionist.hospital.directory import DEPARTMENT_NAMES_HI, DEPARTMENTS, Directory, normalize
from receptionist.models import Doctor, Language

DEVANAGARI_RE = re.compile(r"[ऀ-ॿ]")

# Letters that make up a "word" on either side of a keyword
_WORD_CHARS = r"0-9a-zऀ-ॿ"


@lru_cache(maxsize=512)
def _keyword_re(keyword: str) -> re.Pattern:
    return re.compile(rf"(?<![{_WORD_CHARS}]){re.escape(keyword)}(?![{_WORD_CHARS}])")


def contains_keyword(text: str, keyword: str) -> bool:
    return _keyword_re(normalize(keyword)).search(normalize(text)) is not None


def contains_any(text: str, keywords) -> bool:
    t = normalize(text)
    return any(_keyword_re(normalize(k)).search(t) for k in keywords)


# ── Intent keyword sets ──────────────────────────────────────────

HUMAN_KEYWORDS = [
    "human", "agent", "representative", "operator", "real person", "connect me",
    "transfer", "talk to someone", "speak to someone", "call center", "customer care",
    "receptionist", "agent se", "representative se", "human se", "insaan",
    "एजेंट", "इंसान", "प्रतिनिधि",
]

MEDICAL_KEYWORDS = [
    "fever", "pain", "painful", "chest pain", "breath", "breathing", "breathless",
    "bp", "blood pressure", "diagnose", "diagnosis", "treatment", "medicine", "medicines",
    "tablet", "tablets", "dose", "dosage", "emergency", "vomit", "vomiting", "bleeding",
    "pregnant", "pregnancy", "heart attack", "stroke", "symptom", "symptoms", "unconscious",
    "bukhar", "dard", "saans", "dabav", "dawai", "dawa", "ulti",
    "बुखार", "दर्द", "सांस", "साँस", "दवा", "दवाई", "इमरजेंसी", "उल्टी", "खून",
]

BOOKING_KEYWORDS = [
    "appointment", "appointments", "book", "booking", "schedule", "consultation",
    "consult", "see a doctor", "slot",
    # common speech-recognition mishearings of "appointment"
    "a point meant", "apartment", "appoint", "appointmen", "a pointment", "opointment",
    "milna", "milna hai", "dikhana", "dikhana hai", "booking karni",
    "अपॉइंटमेंट", "अपोइंटमेंट", "बुक", "बुकिंग", "मिलना", "दिखाना",
]

END_OF_CALL_KEYWORDS = [
    "no", "bye", "goodbye", "thanks", "thank you", "that is all", "that's all",
    "nahi", "nahin", "bas", "theek hai", "ok bye",
    "नहीं", "बस", "धन्यवाद", "अलविदा",
]

HINDI_REQUEST_KEYWORDS = ["hindi", "हिंदी", "हिन्दी"]
ENGLISH_REQUEST_KEYWORDS = ["english", "अंग्रेजी", "अंग्रेज़ी", "इंग्लिश"]

DEPARTMENT_ALIASES: list[tuple[str, list[str]]] = [
    ("Cardiology", ["cardio", "cardiology", "cardiologist", "cardiac", "heart", "heart doctor",
                    "dil", "dil ka", "dil ka doctor", "दिल", "हृदय"]),
    ("Orthopedics", ["ortho", "orthopedic", "orthopedics", "orthopaedic", "orthopaedics",
                     "orthopedician", "bones", "bone", "haddi", "haddi ka", "joint", "joints",
                     "हड्डी"]),
    ("ENT", ["ent", "e n t", "ear", "ears", "nose", "throat", "kaan", "naak", "gala",
             "कान", "नाक", "गला"]),
    ("Neurology", ["neuro", "neurology", "neurologist", "brain", "nerve", "nerves", "dimaag",
                   "दिमाग", "दिमाग़"]),
    ("Oncology", ["onco", "oncology", "oncologist", "cancer", "कैंसर"]),
    ("Dermatology", ["derma", "dermatology", "dermatologist", "skin", "twacha", "skin doctor",
                     "त्वचा"]),
    ("Gastroenterology", ["gastro", "gastroenterology", "gastroenterologist", "stomach",
                          "pet", "gas", "पेट"]),
]


def wants_human(text: str) -> bool:
    return contains_any(text, HUMAN_KEYWORDS)


def looks_like_medical_advice(text: str) -> bool:
    return contains_any(text, MEDICAL_KEYWORDS)


def looks_like_booking_intent(text: str) -> bool:
    return contains_any(text, BOOKING_KEYWORDS)


def is_end_of_call(text: str) -> bool:
    return contains_any(text, END_OF_CALL_KEYWORDS)


def detect_language_preference(text: str) -> Language | None:
    """Language the caller asked for (or is speaking), or None for "no change".

    An explicit request for English wins unless Hindi is named as well;
    otherwise any Devanagari in the transcript means Hindi.
    """
    wants_hindi = contains_any(text, HINDI_REQUEST_KEYWORDS)
    wants_english = contains_any(text, ENGLISH_REQUEST_KEYWORDS)
    if wants_english and not wants_hindi:
        return Language.ENGLISH
    if wants_hindi or DEVANAGARI_RE.search(str(text or "")):
        return Language.HINDI
    return None


# ── Phone ────────────────────────────────────────────────────────

_PHONE_RE = re.compile(r"\+?\d[\d\s-]{8,}\d")
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 13


def extract_phone(text: str) -> str | None:
    """First run of 10-13 digits (spaces/hyphens allowed), as ASCII digits."""
    for m in _PHONE_RE.finditer(str(text or "")):
        digits = "".join(str(unicodedata.digit(ch)) for ch in m.group(0) if ch.isdigit())
        if MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            return digits
    return None


# ── Patient name ─────────────────────────────────────────────────

_NAME_FRAME_RE = re.compile(
    r"(?<![a-z])(?:my name is|patient'?s full name is|patient'?s name is|patient name is|"
    r"patient name|the patient is|name is|mera naam|naam hai|मेरा नाम|मरीज़ का नाम|मरीज का नाम)"
    r"\s*:?\s*(?P<name>.+)",
    re.IGNORECASE,
)

_NAME_STOP_RE = re.compile(
    r"[,.;!?।]|\d|\+"
    r"|(?<![a-z])(?:and|phone|number|mobile|contact|hai|aur|i|i'm|im|want|wants|need|needs|would|"
    r"like|book|for|with|to|at|in|from|mujhe|chahiye)(?![a-z'])"
    r"|है|और|नंबर|फ़ोन|फोन|मुझे|चाहिए",
    re.IGNORECASE,
)

_NAME_FILLER_RE = re.compile(
    r"(?<![a-z])(?:patient'?s full name is|patient'?s name is|patient name is|patient name|"
    r"full name is|full name|the name is|the patient is|my name is|name is|it is|it's|"
    r"this is|mera naam|naam|please|sure|okay|ok|yes|haan|ji|no|nope|nahi|nahin|hello)(?![a-z])"
    r"|मेरा नाम|मरीज़ का नाम|मरीज का नाम|नाम|जी",
    re.IGNORECASE,
)

MAX_NAME_WORDS = 4
MAX_FRAMED_NAME_WORDS = 3


def _is_topic_word(word: str) -> bool:
    """Department, booking or time word that ends a spoken name."""
    return bool(
        looks_like_booking_intent(word)
        or detect_department(word)
        or _DAY_RE.fullmatch(word)
        or _DAYPART_RE.fullmatch(word)
    )


def _clean_name(raw: str, max_words: int = MAX_NAME_WORDS) -> str | None:
    stop = _NAME_STOP_RE.search(raw)
    if stop:
        raw = raw[:stop.start()]
    words = raw.strip(string.punctuation + " ").split()
    for i, word in enumerate(words):
        if _is_topic_word(word):
            words = words[:i]
            break
    name = " ".join(words).strip(string.punctuation + " ")
    words = name.split()
    if not words or len(words) > max_words:
        return None
    if name.isascii() and name == name.lower():
        name = string.capwords(name)
    return name


def extract_name(text: str, expecting: bool = False) -> str | None:
    """Patient name from an utterance.

    Without ``expecting`` only framed statements count ("my name is X",
    "patient name X").  With ``expecting`` (the caller was just asked for
    the name) the whole utterance is the name once filler phrases and any
    digits are stripped.
    """
    text = str(text or "").strip()
    if not text:
        return None

    framed = _NAME_FRAME_RE.search(text)
    if framed:
        name = _clean_name(framed.group("name"), MAX_FRAMED_NAME_WORDS)
        if name:
            return name

    if not expecting:
        return None

    cleaned = _PHONE_RE.sub(" ", text)
    cleaned = _NAME_FILLER_RE.sub(" ", cleaned)
    return _clean_name(cleaned)


# ── Department / doctor ──────────────────────────────────────────

def detect_department(text: str, departments: list[str] | None = None) -> str | None:
    """First alias-table hit, else a canonical department name in the text."""
    t = normalize(text)
    if not t:
        return None
    for department, keywords in DEPARTMENT_ALIASES:
        if contains_any(t, keywords):
            return department
    for department in departments or DEPARTMENTS:
        if contains_keyword(t, department):
            return department
        hindi = DEPARTMENT_NAMES_HI.get(department)
        if hindi and hindi in t:
            return department
    return None


_DOCTOR_REF_RE = re.compile(
    r"(?<![a-z])(?:dr\.\s*|dr\s+|doctor\s+|डॉक्टर\s+|डॉ\.\s*|डॉ\s+)(?P<rest>\S.*)$"
)

MIN_DOCTOR_QUERY_CHARS = 4


def doctor_query(text: str) -> str | None:
    """Text following a "Dr"/"Doctor" token, or None if there is no doctor reference."""
    m = _DOCTOR_REF_RE.search(normalize(text))
    if not m:
        return None
    return m.group("rest").strip() or None


def match_doctors(fragment: str, directory: Directory) -> list[Doctor]:
    """Directory matches for the longest word window of ``fragment`` that has any.

    Windows are tried longest first, left to right, so "neha sharma please"
    resolves through "neha sharma".  Windows shorter than four characters
    are ignored.
    """
    words = normalize(fragment).strip(string.punctuation + " ").split()
    for size in range(len(words), 0, -1):
        for start in range(0, len(words) - size + 1):
            window = " ".join(words[start:start + size]).strip(string.punctuation + "।")
            if len(window) < MIN_DOCTOR_QUERY_CHARS:
                continue
            matches = directory.find_by_name(window)
            if matches:
                return matches
    return []


# ── Option selection ─────────────────────────────────────────────

_OPTION_DIGIT_RE = re.compile(r"(?<![\d:])([1-9])(?:st|nd|rd|th)?(?![\d:])")

OPTION_WORDS = {
    1: ["one", "first", "pehla", "pahla", "pehle", "ek", "एक", "पहला", "पहले", "पहली"],
    2: ["two", "second", "doosra", "dusra", "doosre", "dusre", "दूसरा", "दूसरे", "दूसरी"],
    3: ["three", "third", "teesra", "tisra", "teesre", "teen", "तीन", "तीसरा", "तीसरे", "तीसरी"],
}


def parse_option_number(text: str, limit: int) -> int | None:
    """1-based option picked by the caller ("2", "the second one", "दूसरा")."""
    t = _CLOCK_RE.sub(" ", normalize(text))
    m = _OPTION_DIGIT_RE.search(t)
    if m:
        n = int(m.group(1))
        return n if 1 <= n <= limit else None
    # Earliest option word wins: "the second one" is 2, not 1
    hits = []
    for n, words in OPTION_WORDS.items():
        for word in words:
            found = _keyword_re(normalize(word)).search(t)
            if found:
                hits.append((found.start(), n))
    if not hits:
        return None
    n = min(hits)[1]
    return n if n <= limit else None


# ── Preferred time ───────────────────────────────────────────────

DAY_WORDS = [
    "day after tomorrow", "today", "tomorrow", "tonight",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "next monday", "next tuesday", "next wednesday", "next thursday", "next friday",
    "next saturday", "next sunday", "next week", "this week", "weekend",
    "aaj", "kal", "parso", "parson",
    "आज", "कल", "परसों", "सोमवार", "मंगलवार", "बुधवार", "गुरुवार", "शुक्रवार", "शनिवार", "रविवार",
]

DAYPART_WORDS = [
    "morning", "afternoon", "evening", "night", "noon",
    "subah", "dopahar", "shaam", "sham", "raat",
    "सुबह", "दोपहर", "शाम", "रात",
]

_CLOCK_RE = re.compile(
    rf"(?<![\d:])\d{{1,2}}(?::\d{{2}})?\s*(?:a\.?m\.?|p\.?m\.?|baje|o'clock|बजे)(?![{_WORD_CHARS}])",
    re.IGNORECASE,
)


def _word_list_re(words: list[str]) -> re.Pattern:
    alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<![{_WORD_CHARS}])(?:{alternation})(?![{_WORD_CHARS}])", re.IGNORECASE)


_DAY_RE = _word_list_re(DAY_WORDS)
_DAYPART_RE = _word_list_re(DAYPART_WORDS)


def extract_preferred_time(text: str) -> str | None:
    """Smallest span covering every day, time-of-day and clock token, or None.

    The gate is conservative: an utterance without any such token is never
    read as a time.
    """
    text = str(text or "")
    spans = [
        m.span()
        for pattern in (_DAY_RE, _DAYPART_RE, _CLOCK_RE)
        for m in pattern.finditer(text)
    ]
    if not spans:
        return None
    start = min(s for s, _ in spans)
    end = max(e for _, e in spans)
    phrase = text[start:end].strip(string.punctuation + " ")
    return phrase or text.strip()
