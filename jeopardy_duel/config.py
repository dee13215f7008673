import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {value!r}")
        return default


@dataclass
class GameSettings:
    """Timing and storage settings for a game server"""
    response_seconds: int = 10
    final_seconds: int = 30
    result_delay: float = 2.0
    reveal_delay: float = 3.0
    skip_delay: float = 3.0
    capture_retry_delay: float = 1.0
    max_capture_attempts: int = 3
    data_dir: Path = field(default_factory=lambda: Path("data"))
    tsv_file: str = "combined_season1-41.tsv"
    used_file: str = "used_questions.json"

    @property
    def tsv_path(self) -> Path:
        return self.data_dir / self.tsv_file

    @property
    def used_path(self) -> Path:
        return self.data_dir / self.used_file

    @classmethod
    def from_env(cls) -> "GameSettings":
        """Build settings from JEOPARDY_* environment variables"""
        settings = cls(
            response_seconds=_env_int("JEOPARDY_RESPONSE_SECONDS", cls.response_seconds),
            final_seconds=_env_int("JEOPARDY_FINAL_SECONDS", cls.final_seconds),
            data_dir=Path(os.environ.get("JEOPARDY_DATA_DIR", "data")),
            tsv_file=os.environ.get("JEOPARDY_TSV_FILE", cls.tsv_file),
            used_file=os.environ.get("JEOPARDY_USED_FILE", cls.used_file),
        )
        logger.info(f"Game settings: response={settings.response_seconds}s, "
                    f"final={settings.final_seconds}s, data={settings.data_dir}")
        return settings


@dataclass
class LLMConfig:
    """Configuration for LLM calls"""
    model: str = "claude-3-5-haiku-20241022"
    temperature: float = 0.0
    max_tokens: int = 200
    api_key: Optional[str] = None
    base_url: str = "https://api.anthropic.com/v1/messages"
    api_version: str = "2023-06-01"
    timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            model=os.environ.get("JEOPARDY_LLM_MODEL", cls.model),
            api_key=os.environ.get("ANTHROPIC_API_KEY"),
        )
