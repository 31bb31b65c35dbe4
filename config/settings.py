import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env (config/.env first, then repo root)
BASE_DIR = Path(__file__).resolve().parent
ROOT_DIR = BASE_DIR.parent
load_dotenv(BASE_DIR / ".env")
load_dotenv(ROOT_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    REPLICATE_API_TOKEN: str | None = os.getenv("REPLICATE_API_TOKEN")
    REPLICATE_MODEL_VERSION: str | None = os.getenv("REPLICATE_MODEL_VERSION")
    REPLICATE_API_URL: str = os.getenv("REPLICATE_API_URL", "https://api.replicate.com/v1")

    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "60"))  # seconds, per HTTP call

    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "1.2"))  # seconds
    POLL_TIMEOUT: float = float(os.getenv("POLL_TIMEOUT", "600"))  # 0 = no deadline

    MOCKUPS_FILE: str = os.getenv("MOCKUPS_FILE", str(ROOT_DIR / "mockups.json"))
    COLLECTION_PREFIX: str = os.getenv("COLLECTION_PREFIX", "AG")

    REPLAY_BUFFER_SIZE: int = int(os.getenv("REPLAY_BUFFER_SIZE", "0"))
    FAIL_ON_EMPTY_BATCH: bool = _env_bool("FAIL_ON_EMPTY_BATCH", False)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def missing_provider_config(self) -> list[str]:
        missing = []
        if not self.REPLICATE_API_TOKEN:
            missing.append("REPLICATE_API_TOKEN")
        if not self.REPLICATE_MODEL_VERSION:
            missing.append("REPLICATE_MODEL_VERSION")
        return missing

settings = Settings()
