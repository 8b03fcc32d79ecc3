"""Bilingual prompt composition for the hospital flow.

All caller-facing text of the booking flow is rendered here, in English or
Hindi depending on the session language.  Two rules hold for Hindi output:

  * doctor names stay in Latin script ("Dr Neha Sharma"), because the
    caller repeats them back and they are the directory's lookup key;
  * everything else (departments, slot descriptors, fixed phrases) is
    Devanagari, with English clock/day tokens converted through a fixed
    substitution table and a configurable daypart table.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from enum import Enum

from receptionist.config import settings
from receptionist.hospital.directory import DEPARTMENT_NAMES_HI
from receptionist.models import Doctor, Slots

EN = "en"
HI = "hi"


class PromptKind(str, Enum):
    INFO = "info"                  # free to paraphrase
    COLLECT = "collect"            # asks for name / phone / time
    CONFIRMATION = "confirmation"  # carries booking details
    HANDOFF = "handoff"            # fixed escalation message


@dataclass(frozen=True)
class Prompt:
    text: str
    kind: PromptKind = PromptKind.INFO

    def __add__(self, other: "Prompt") -> "Prompt":
        # The stricter kind wins so a combined prompt is never paraphrased
        # when any part of it must reach the caller verbatim.
        kind = other.kind if other.kind is not PromptKind.INFO else self.kind
        return Prompt(f"{self.text} {other.text}".strip(), kind)


PROMPTS: dict[str, dict[str, str]] = {
    "greeting": {
        EN: "Hello! You've reached {hospital} appointment assistance. You can speak in Hindi or English. How can I help?",
        HI: "नमस्ते! आप {hospital} की अपॉइंटमेंट सहायता से जुड़े हैं। आप हिंदी या अंग्रेज़ी में बात कर सकते हैं। मैं आपकी क्या मदद करूँ?",
    },
    "generic_help": {
        EN: "I can help with appointments at {hospital}. Say a department like cardiology, or say Dr followed by the doctor's name, or say agent.",
        HI: "मैं {hospital} में अपॉइंटमेंट बुक करने में आपकी मदद कर सकती हूँ। कार्डियोलॉजी जैसा कोई विभाग बोलिए, या डॉक्टर का नाम बोलिए, या प्रतिनिधि से बात करने के लिए एजेंट बोलिए।",
    },
    "ask_dept_or_doctor": {
        EN: "Sure, I can book that. Which department or doctor would you like? For example cardiology or orthopedics, or say Dr followed by the doctor's name.",
        HI: "ज़रूर, मैं अपॉइंटमेंट बुक कर सकती हूँ। आप किस विभाग या किस डॉक्टर से मिलना चाहेंगे? जैसे कार्डियोलॉजी या ऑर्थोपेडिक्स, या डॉक्टर का नाम बोलिए।",
    },
    "doctor_not_found": {
        EN: "I couldn't find that doctor. Please say the department, for example cardiology, orthopedics or ENT.",
        HI: "मुझे इस नाम के डॉक्टर नहीं मिले। कृपया विभाग बताइए, जैसे कार्डियोलॉजी, ऑर्थोपेडिक्स या ईएनटी।",
    },
    "no_doctors": {
        EN: "I don't have doctors listed for {department} right now. Would you like to connect to an agent?",
        HI: "अभी {department} के लिए कोई डॉक्टर उपलब्ध नहीं हैं। क्या आप एजेंट से बात करना चाहेंगे?",
    },
    "doctor_options": {
        EN: "For {department}, we have these doctors: {options}. Which one would you like to book? You can say the number, like {choices}.",
        HI: "{department} के लिए हमारे पास ये डॉक्टर हैं: {options}। आप किसे बुक करना चाहेंगे? आप नंबर भी बोल सकते हैं, जैसे {choices}।",
    },
    "doctor_candidates": {
        EN: "I found more than one doctor with that name: {options}. Which one did you mean? You can say the number, like {choices}.",
        HI: "इस नाम से एक से ज़्यादा डॉक्टर मिले: {options}। आप किनकी बात कर रहे हैं? आप नंबर बोल सकते हैं, जैसे {choices}।",
    },
    "pick_reprompt": {
        EN: "Please say the doctor name or the option number ({choices}). You can also say agent to connect to a human representative.",
        HI: "कृपया डॉक्टर का नाम या विकल्प का नंबर ({choices}) बोलिए। प्रतिनिधि से बात करने के लिए आप एजेंट भी बोल सकते हैं।",
    },
    "doctor_intro": {
        EN: "Sure. {doctor} is in {department}. {slots}",
        HI: "ज़रूर। {doctor} {department} विभाग में हैं। {slots}",
    },
    "slots": {
        EN: "Next available: {slots}.",
        HI: "अगला उपलब्ध समय: {slots}।",
    },
    "no_slots": {
        EN: "Next available slots will be shared by the booking team.",
        HI: "उपलब्ध समय की जानकारी बुकिंग टीम आपको देगी।",
    },
    "ask_name": {
        EN: "To book, please tell me the patient's full name.",
        HI: "बुकिंग के लिए कृपया मरीज़ का पूरा नाम बताइए।",
    },
    "reask_name": {
        EN: "Sorry, I didn't get the name. Please tell me the patient's full name.",
        HI: "माफ़ कीजिए, नाम समझ नहीं आया। कृपया मरीज़ का पूरा नाम बताइए।",
    },
    "ask_phone": {
        EN: "Thanks. Please tell me your 10-digit mobile number for confirmation.",
        HI: "धन्यवाद। कन्फर्मेशन के लिए कृपया अपना 10 अंकों का मोबाइल नंबर बताइए।",
    },
    "reask_phone": {
        EN: "Sorry, I didn't catch the mobile number. Please say the 10-digit number again.",
        HI: "माफ़ कीजिए, मोबाइल नंबर समझ नहीं आया। कृपया 10 अंकों का नंबर दोबारा बोलिए।",
    },
    "ask_time": {
        EN: "Great. What day or time do you prefer? For example, tomorrow evening or Friday morning.",
        HI: "बढ़िया। आप कौन सा दिन या समय पसंद करेंगे? जैसे कल शाम या शुक्रवार सुबह।",
    },
    "confirmation": {
        EN: "Done. I've raised an appointment request for {patient}{with_whom}. Preferred time: {time}. Confirmation ID is {confirmation_id}. You will receive confirmation on {phone}.",
        HI: "हो गया। मैंने {patient} के लिए{with_whom} अपॉइंटमेंट का अनुरोध दर्ज कर दिया है। पसंदीदा समय: {time}। कन्फर्मेशन आईडी है {confirmation_id}। आपको {phone} पर कन्फर्मेशन मिल जाएगा।",
    },
    "already_confirmed": {
        EN: "Your appointment request is already raised. Confirmation ID is {confirmation_id}. Say agent if you need anything else.",
        HI: "आपका अपॉइंटमेंट अनुरोध पहले ही दर्ज हो चुका है। कन्फर्मेशन आईडी है {confirmation_id}। और कुछ चाहिए तो एजेंट बोलिए।",
    },
    "handoff": {
        EN: "Sure. I'm connecting you to a human representative now.",
        HI: "ज़रूर। मैं आपको अभी हमारे प्रतिनिधि से जोड़ रही हूँ।",
    },
    "no_speech": {
        EN: "Sorry, I didn't catch that. Please say it again.",
        HI: "माफ़ कीजिए, आपकी आवाज़ साफ़ नहीं आई। दोबारा बोलिए।",
    },
    "anything_else": {
        EN: "Anything else?",
        HI: "और कुछ?",
    },
    "goodbye": {
        EN: "Thank you for calling. Goodbye.",
        HI: "धन्यवाद। अलविदा।",
    },
    "transfer_unavailable": {
        EN: "Transfer is not configured right now. Please try again later.",
        HI: "अभी ट्रांसफ़र उपलब्ध नहीं है। कृपया बाद में कोशिश करें।",
    },
    "technical_issue": {
        EN: "Sorry, I faced a technical issue. Please try again.",
        HI: "माफ़ कीजिए, तकनीकी समस्या आ गई। कृपया दोबारा कोशिश करें।",
    },
}

_FALLBACKS = {
    "patient": {EN: "the patient", HI: "मरीज़"},
    "phone": {EN: "your number", HI: "आपके नंबर"},
}


def new_confirmation_id(prefix: str | None = None) -> str:
    """Cosmetic booking reference: prefix + 6 uppercase hex characters."""
    return f"{settings.confirmation_prefix if prefix is None else prefix}{secrets.token_hex(3).upper()}"


# ── Hindi time phrases ───────────────────────────────────────────

# Longest phrases first so "day after tomorrow" wins over "tomorrow"
_HINDI_TOKENS: list[tuple[str, str]] = [
    ("day after tomorrow", "परसों"),
    ("tomorrow", "कल"),
    ("tonight", "आज रात"),
    ("today", "आज"),
    ("monday", "सोमवार"),
    ("tuesday", "मंगलवार"),
    ("wednesday", "बुधवार"),
    ("thursday", "गुरुवार"),
    ("friday", "शुक्रवार"),
    ("saturday", "शनिवार"),
    ("sunday", "रविवार"),
    ("next week", "अगले हफ़्ते"),
    ("this week", "इस हफ़्ते"),
    ("weekend", "सप्ताहांत"),
    ("next", "अगले"),
    ("morning", "सुबह"),
    ("afternoon", "दोपहर"),
    ("evening", "शाम"),
    ("night", "रात"),
    ("noon", "दोपहर"),
    ("parson", "परसों"),
    ("parso", "परसों"),
    ("aaj", "आज"),
    ("kal", "कल"),
    ("subah", "सुबह"),
    ("dopahar", "दोपहर"),
    ("shaam", "शाम"),
    ("sham", "शाम"),
    ("raat", "रात"),
    ("baje", "बजे"),
]

# Connectors dropped from converted phrases ("Friday at 4 PM")
_DROPPED_WORDS = ["in the", "at", "on", "by", "around", "about", "the"]

_CLOCK_RE = re.compile(r"(?<![\d:])(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\.?(?![a-z])", re.IGNORECASE)


def daypart(hour24: int, table: list | None = None) -> str:
    """Hindi daypart word for an hour of the day (0-23)."""
    for start, end, label in table or settings.hindi_dayparts:
        if start <= hour24 <= end:
            return label
    return ""


def _hindi_clock(match: re.Match, table: list | None) -> str:
    hour = int(match.group(1))
    minutes = match.group(2)
    pm = match.group(3).lower() == "p"
    hour24 = hour % 12 + (12 if pm else 0)
    label = daypart(hour24, table)
    clock = f"{hour}:{minutes}" if minutes else str(hour)
    return f"{label} {clock} बजे".strip()


def to_hindi_time(phrase: str, table: list | None = None) -> str:
    """Convert English/Hinglish day and clock tokens to Hindi.

    >>> to_hindi_time("Tomorrow 5 PM")
    'कल शाम 5 बजे'
    """
    text = _CLOCK_RE.sub(lambda m: _hindi_clock(m, table), str(phrase or ""))
    for english, hindi in _HINDI_TOKENS:
        text = re.sub(rf"(?<![a-z]){re.escape(english)}(?![a-z])", hindi, text, flags=re.IGNORECASE)
    for word in _DROPPED_WORDS:
        text = re.sub(rf"(?<![a-z]){re.escape(word)}(?![a-z])", " ", text, flags=re.IGNORECASE)
    return " ".join(text.split())


def choices_line(count: int, lang: str) -> str:
    numbers = [str(i) for i in range(1, max(count, 1) + 1)]
    if len(numbers) == 1:
        return numbers[0]
    joiner = " या " if lang == HI else (", or " if len(numbers) > 2 else " or ")
    head = ", ".join(numbers[:-1])
    return f"{head}{joiner}{numbers[-1]}"


def doctor_options_line(doctors: list[Doctor]) -> str:
    """ "1. Dr A  2. Dr B  3. Dr C" for at most three doctors."""
    return "  ".join(f"{i}. {d.name}" for i, d in enumerate(doctors[:3], start=1))


class Composer:
    """Renders prompts for one language."""

    def __init__(self, hindi: bool = False, dayparts: list | None = None) -> None:
        self.lang = HI if hindi else EN
        self._dayparts = dayparts

    def _say(self, key: str, kind: PromptKind = PromptKind.INFO, **values: str) -> Prompt:
        return Prompt(PROMPTS[key][self.lang].format(**values), kind)

    def department(self, department: str) -> str:
        if self.lang == HI:
            return DEPARTMENT_NAMES_HI.get(department, department)
        return department

    def time_phrase(self, phrase: str) -> str:
        if self.lang == HI:
            return to_hindi_time(phrase, self._dayparts)
        return phrase

    def hospital(self) -> str:
        return settings.hospital_name_hindi if self.lang == HI else settings.hospital_name

    def slots_line(self, doctor: Doctor) -> str:
        slots = doctor.next_slots[:3]
        if not slots:
            return PROMPTS["no_slots"][self.lang]
        rendered = ", ".join(self.time_phrase(s) for s in slots)
        return PROMPTS["slots"][self.lang].format(slots=rendered)

    # ── Flow prompts ──

    def greeting(self) -> Prompt:
        return self._say("greeting", hospital=self.hospital())

    def generic_help(self) -> Prompt:
        return self._say("generic_help", hospital=self.hospital())

    def ask_department_or_doctor(self) -> Prompt:
        return self._say("ask_dept_or_doctor")

    def doctor_not_found(self) -> Prompt:
        return self._say("doctor_not_found")

    def no_doctors(self, department: str) -> Prompt:
        return self._say("no_doctors", department=self.department(department))

    def doctor_options(self, department: str, doctors: list[Doctor]) -> Prompt:
        return self._say(
            "doctor_options",
            department=self.department(department),
            options=doctor_options_line(doctors),
            choices=choices_line(min(len(doctors), 3), self.lang),
        )

    def doctor_candidates(self, doctors: list[Doctor]) -> Prompt:
        return self._say(
            "doctor_candidates",
            options=doctor_options_line(doctors),
            choices=choices_line(min(len(doctors), 3), self.lang),
        )

    def pick_reprompt(self, count: int) -> Prompt:
        return self._say("pick_reprompt", choices=choices_line(min(count, 3), self.lang))

    def doctor_intro(self, doctor: Doctor) -> Prompt:
        return self._say(
            "doctor_intro",
            doctor=doctor.name,
            department=self.department(doctor.department),
            slots=self.slots_line(doctor),
        )

    def ask_name(self, retry: bool = False) -> Prompt:
        return self._say("reask_name" if retry else "ask_name", PromptKind.COLLECT)

    def ask_phone(self, retry: bool = False) -> Prompt:
        return self._say("reask_phone" if retry else "ask_phone", PromptKind.COLLECT)

    def ask_time(self) -> Prompt:
        return self._say("ask_time", PromptKind.COLLECT)

    def confirmation(self, slots: Slots) -> Prompt:
        if slots.doctor_name:
            with_whom = slots.doctor_name
        elif slots.department:
            with_whom = self.department(slots.department)
        else:
            with_whom = ""
        if with_whom:
            with_whom = f" {with_whom} के साथ" if self.lang == HI else (
                f" with {with_whom}" if slots.doctor_name else f" in {with_whom}"
            )
        return self._say(
            "confirmation",
            PromptKind.CONFIRMATION,
            patient=slots.patient_name or _FALLBACKS["patient"][self.lang],
            with_whom=with_whom,
            time=self.time_phrase(slots.preferred_time or ""),
            confirmation_id=slots.confirmation_id or "",
            phone=slots.phone or _FALLBACKS["phone"][self.lang],
        )

    def already_confirmed(self, slots: Slots) -> Prompt:
        return self._say(
            "already_confirmed", PromptKind.CONFIRMATION,
            confirmation_id=slots.confirmation_id or "",
        )

    def handoff(self) -> Prompt:
        return self._say("handoff", PromptKind.HANDOFF)

    # ── Transport prompts ──

    def no_speech(self) -> str:
        return PROMPTS["no_speech"][self.lang]

    def anything_else(self) -> str:
        return PROMPTS["anything_else"][self.lang]

    def goodbye(self) -> str:
        return PROMPTS["goodbye"][self.lang]

    def transfer_unavailable(self) -> str:
        return PROMPTS["transfer_unavailable"][self.lang]

    def technical_issue(self) -> str:
        return PROMPTS["technical_issue"][self.lang]
