"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("receptionist.config")


class Settings(BaseSettings):
    # Persona
    mode: str = "general"
    hospital_name: str = "Medanta"
    hospital_name_hindi: str = "मेदांता"
    hospital_location: str = "Gurgaon"
    assistant_name: str = "Cavas AI admissions assistant"

    # Telephony
    agent_number: str = ""
    base_url: str = "http://localhost:8080"
    gather_timeout: int = 6
    max_silence_retries: int = 2

    # OpenAI (paraphrase, knowledge base, call summaries)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"

    # ElevenLabs TTS
    elevenlabs_api_key: str = ""
    eleven_voice_id: str = ""
    eleven_voice_id_en: str = ""
    eleven_voice_id_hi: str = ""
    eleven_model_id: str = "eleven_multilingual_v2"

    # Storage
    transcripts_path: str = "transcripts.json"
    kb_vectors_path: str = "kb/kb_vectors.json"
    recent_calls_limit: int = 20
    history_limit: int = 10

    # Booking
    confirmation_prefix: str = "APT-"
    # (first hour, last hour, label) buckets for Hindi clock phrases
    hindi_dayparts: list[tuple[int, int, str]] = [
        (0, 4, "रात"),
        (5, 11, "सुबह"),
        (12, 16, "दोपहर"),
        (17, 19, "शाम"),
        (20, 23, "रात"),
    ]

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-...", "your-key-here"}

        if self.mode.strip().lower() not in ("general", "education", "hospital"):
            raise ValueError(
                f"MODE={self.mode!r} is not supported. Use 'general' or 'hospital'."
            )

        if not self.openai_api_key or self.openai_api_key in _placeholders:
            warnings.append(
                "OPENAI_API_KEY not set — polish, knowledge base answers and call summaries disabled."
            )

        if not self.elevenlabs_api_key:
            warnings.append("ELEVENLABS_API_KEY not set — /tts will fail.")

        if not self.agent_number:
            warnings.append("AGENT_NUMBER not set — transfers will end the call instead.")

        # Admin API key: warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()

# Runtime-mutable settings (admin API can change these)
runtime_settings = {
    # Paraphrase deterministic hospital prompts through the LLM
    "polish_enabled": True,
    # Append "Anything else?" after general-mode answers
    "followup_prompt_enabled": True,
}
