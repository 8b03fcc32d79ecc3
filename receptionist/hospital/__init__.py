"""Hospital appointment booking flow: directory, extractors, composer and dialogue."""

from .dialogue import DialogueOutcome, HospitalDialogue

__all__ = ["DialogueOutcome", "HospitalDialogue"]
