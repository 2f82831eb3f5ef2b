"""Runtime settings loaded from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from interview_tutor.errors import ConfigurationError

DEFAULT_DB_PATH = str(Path.home() / ".interview_tutor" / "history.db")
DEFAULT_BANK_DIR = str(Path(__file__).parent / "content" / "questions")
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    grader_model: str = DEFAULT_MODEL
    grader_timeout: float = 60.0
    grader_temperature: float = 0.2
    db_path: str = DEFAULT_DB_PATH
    bank_dir: str = DEFAULT_BANK_DIR
    log_level: str = "WARNING"

    def __repr__(self) -> str:
        key = "***" if self.openai_api_key else None
        return (
            f"Settings(openai_api_key={key!r}, grader_model={self.grader_model!r}, "
            f"grader_timeout={self.grader_timeout!r}, db_path={self.db_path!r}, "
            f"bank_dir={self.bank_dir!r}, log_level={self.log_level!r})"
        )

    __str__ = __repr__


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", kind="bad_setting")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from environment variables, reading .env first if present."""
    load_dotenv(env_file)
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        grader_model=os.getenv("GRADER_MODEL") or DEFAULT_MODEL,
        grader_timeout=_float_env("GRADER_TIMEOUT", 60.0),
        grader_temperature=_float_env("GRADER_TEMPERATURE", 0.2),
        db_path=os.getenv("TUTOR_DB_PATH") or DEFAULT_DB_PATH,
        bank_dir=os.getenv("TUTOR_BANK_DIR") or DEFAULT_BANK_DIR,
        log_level=(os.getenv("LOG_LEVEL") or "WARNING").upper(),
    )
