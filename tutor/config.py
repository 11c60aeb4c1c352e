import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file but don't override existing environment variables
load_dotenv(override=False)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_VOICE = "21m00Tcm4TlvDq8ikWAM"


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    JWT_SECRET and LLM_API_KEY are required; everything else has a default.
    Billing is switched off when STRIPE_SECRET_KEY is unset.
    """

    jwt_secret: str
    llm_api_key: str
    port: int = 8080
    llm_base_url: str = "https://openai.inference.de-txl.ionos.com/v1"
    llm_model: str = "mistral-small-24b"
    elevenlabs_api_key: str = ""
    elevenlabs_model: str = "eleven_multilingual_v2"
    elevenlabs_voice_it: str = DEFAULT_VOICE
    elevenlabs_voice_es: str = DEFAULT_VOICE
    elevenlabs_voice_pt: str = DEFAULT_VOICE
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id: str = ""
    app_base_url: str = "http://localhost:8080"
    admin_email: str = ""
    users_file: str = "data/users.json"
    log_level: str = "INFO"
    access_token_expire_days: int = 7

    @property
    def billing_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    def voice_for(self, language: str) -> str:
        voices = {
            "it": self.elevenlabs_voice_it,
            "es": self.elevenlabs_voice_es,
            "pt": self.elevenlabs_voice_pt,
        }
        return voices.get(language, self.elevenlabs_voice_it)

    @classmethod
    def from_env(cls) -> "Settings":
        jwt_secret = os.environ.get("JWT_SECRET")
        llm_api_key = os.environ.get("LLM_API_KEY")

        # Basic validation
        if not jwt_secret:
            raise ValueError("JWT_SECRET must be set in environment or .env file")
        if not llm_api_key:
            raise ValueError("LLM_API_KEY must be set in environment or .env file")

        return cls(
            jwt_secret=jwt_secret,
            llm_api_key=llm_api_key,
            port=int(os.environ.get("PORT", "8080")),
            llm_base_url=os.environ.get("LLM_BASE_URL", cls.llm_base_url).rstrip("/"),
            llm_model=os.environ.get("LLM_MODEL", cls.llm_model),
            elevenlabs_api_key=os.environ.get("ELEVENLABS_API_KEY", ""),
            elevenlabs_model=os.environ.get("ELEVENLABS_MODEL", cls.elevenlabs_model),
            elevenlabs_voice_it=os.environ.get("ELEVENLABS_VOICE_IT", DEFAULT_VOICE),
            elevenlabs_voice_es=os.environ.get("ELEVENLABS_VOICE_ES", DEFAULT_VOICE),
            elevenlabs_voice_pt=os.environ.get("ELEVENLABS_VOICE_PT", DEFAULT_VOICE),
            stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
            stripe_price_id=os.environ.get("STRIPE_PRICE_ID", ""),
            app_base_url=os.environ.get("APP_BASE_URL", cls.app_base_url).rstrip("/"),
            admin_email=os.environ.get("ADMIN_EMAIL", ""),
            users_file=os.environ.get("USERS_FILE", cls.users_file),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            access_token_expire_days=int(os.environ.get("ACCESS_TOKEN_EXPIRE_DAYS", "7")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()

