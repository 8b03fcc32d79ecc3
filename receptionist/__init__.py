"""Telephony receptionist: hospital appointment booking and general Q&A over voice webhooks."""
