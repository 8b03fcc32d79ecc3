"""Static doctor/department directory for the hospital reception demo.

Lookups are deliberately simple: department is an exact (normalized) match
plus the hospital's fixed location, name search is plain substring
containment capped at five results in directory order.
"""

from __future__ import annotations

import re

from receptionist.models import Doctor

DOCTORS: list[Doctor] = [
    Doctor(
        id="D001",
        name="Dr Arjun Mehta",
        department="Cardiology",
        location="Gurgaon",
        next_slots=["Tomorrow 5 PM", "Day after tomorrow 11 AM", "Friday 4 PM"],
        aliases=["अर्जुन मेहता"],
    ),
    Doctor(
        id="D002",
        name="Dr Neha Sharma",
        department="Cardiology",
        location="Gurgaon",
        next_slots=["Tomorrow 12 PM", "Thursday 6 PM"],
        aliases=["नेहा शर्मा"],
    ),
    Doctor(
        id="D003",
        name="Dr Rohan Kapoor",
        department="Orthopedics",
        location="Gurgaon",
        next_slots=["Tomorrow 3 PM", "Saturday 10 AM"],
        aliases=["रोहन कपूर"],
    ),
    Doctor(
        id="D004",
        name="Dr Simran Kaur",
        department="ENT",
        location="Gurgaon",
        next_slots=["Tomorrow 1 PM", "Friday 2 PM"],
        aliases=["सिमरन कौर"],
    ),
]

DEPARTMENTS: list[str] = [
    "Cardiology",
    "Orthopedics",
    "ENT",
    "Neurology",
    "Oncology",
    "Dermatology",
    "Gastroenterology",
]

# Spoken department names for Hindi prompts
DEPARTMENT_NAMES_HI: dict[str, str] = {
    "Cardiology": "कार्डियोलॉजी",
    "Orthopedics": "ऑर्थोपेडिक्स",
    "ENT": "ईएनटी",
    "Neurology": "न्यूरोलॉजी",
    "Oncology": "ऑन्कोलॉजी",
    "Dermatology": "डर्मेटोलॉजी",
    "Gastroenterology": "गैस्ट्रोएंटेरोलॉजी",
}

MAX_NAME_MATCHES = 5

_DR_PREFIX = re.compile(r"^(?:dr\.?|doctor|डॉक्टर|डॉ\.?)\s*")


def normalize(text: str | None) -> str:
    """Lowercase and collapse whitespace."""
    return re.sub(r"\s+", " ", str(text or "")).strip().lower()


class Directory:
    """Read-only view over a list of doctors."""

    def __init__(
        self,
        doctors: list[Doctor] | None = None,
        departments: list[str] | None = None,
        location: str = "Gurgaon",
    ) -> None:
        self._doctors = list(DOCTORS if doctors is None else doctors)
        self._departments = list(DEPARTMENTS if departments is None else departments)
        self._location = location
        self._by_id = {d.id: d for d in self._doctors}

    @property
    def doctors(self) -> list[Doctor]:
        return list(self._doctors)

    @property
    def departments(self) -> list[str]:
        return list(self._departments)

    def get(self, doctor_id: str) -> Doctor | None:
        return self._by_id.get(doctor_id)

    def by_department(self, department: str, location: str | None = None) -> list[Doctor]:
        """Doctors of ``department`` at the hospital location, in directory order."""
        dept = normalize(department)
        loc = normalize(location or self._location)
        return [
            d for d in self._doctors
            if normalize(d.department) == dept and normalize(d.location) == loc
        ]

    def find_by_name(self, query: str) -> list[Doctor]:
        """Substring search over names and aliases, "Dr" prefix ignored."""
        q = _DR_PREFIX.sub("", normalize(query))
        if not q:
            return []
        matches = []
        for d in self._doctors:
            haystacks = [normalize(d.name)] + [normalize(a) for a in d.aliases]
            if any(q in h for h in haystacks):
                matches.append(d)
        return matches[:MAX_NAME_MATCHES]


DIRECTORY = Directory()
