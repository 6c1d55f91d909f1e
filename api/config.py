"""
Environment configuration shared by the Vercel functions and the local server.
Reads: OPENAI_API_KEY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, PAYMENT_LINK_URL,
APP_URL, LOG_DIR, SESSION_DB, FLASK_SECRET_KEY, OPENAI_CHAT_MODEL, OPENAI_TRANSCRIBE_MODEL
"""
import os
from dataclasses import dataclass

DEFAULT_PAYMENT_LINK = "https://buy.stripe.com/test_3cI3cwc7Rasl18U4ToeAg00"


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    payment_link_url: str = DEFAULT_PAYMENT_LINK
    app_url: str = "http://localhost:5001"
    log_dir: str = "logs"
    session_db: str = "data/sessions.db"
    secret_key: str = ""
    chat_model: str = "gpt-4"
    transcribe_model: str = "whisper-1"
    transcribe_language: str = "en"

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)


def load_settings(environ=None) -> Settings:
    """Build Settings from the environment. Called per request so env changes are picked up."""
    env = os.environ if environ is None else environ
    return Settings(
        openai_api_key=(env.get("OPENAI_API_KEY") or env.get("OPENAI_KEY") or "").strip(),
        stripe_secret_key=(env.get("STRIPE_SECRET_KEY") or "").strip(),
        stripe_webhook_secret=(env.get("STRIPE_WEBHOOK_SECRET") or "").strip(),
        payment_link_url=(env.get("PAYMENT_LINK_URL") or DEFAULT_PAYMENT_LINK).strip(),
        app_url=(env.get("APP_URL") or "http://localhost:5001").rstrip("/"),
        log_dir=env.get("LOG_DIR") or os.path.join(os.getcwd(), "logs"),
        session_db=env.get("SESSION_DB") or os.path.join(os.getcwd(), "data", "sessions.db"),
        secret_key=env.get("FLASK_SECRET_KEY", ""),
        chat_model=env.get("OPENAI_CHAT_MODEL") or "gpt-4",
        transcribe_model=env.get("OPENAI_TRANSCRIBE_MODEL") or "whisper-1",
        transcribe_language=env.get("OPENAI_TRANSCRIBE_LANGUAGE") or "en",
    )
