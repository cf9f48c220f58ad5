import json
import logging
import os
from datetime import UTC, datetime

from pydantic import BaseModel

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_GATEWAY_MODEL = "google/gemini-2.5-flash"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"


class Settings(BaseModel):
    gateway_url: str = DEFAULT_GATEWAY_URL
    gateway_api_key: str | None = None
    gateway_model: str = DEFAULT_GATEWAY_MODEL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    gateway_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            gateway_url=env.get("SHIFTBOARD_GATEWAY_URL", DEFAULT_GATEWAY_URL),
            gateway_api_key=env.get("SHIFTBOARD_GATEWAY_API_KEY") or None,
            gateway_model=env.get(
                "SHIFTBOARD_GATEWAY_MODEL", DEFAULT_GATEWAY_MODEL
            ),
            transcription_model=env.get(
                "SHIFTBOARD_TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL
            ),
            gateway_timeout=float(env.get("SHIFTBOARD_GATEWAY_TIMEOUT", "30")),
            log_level=env.get("SHIFTBOARD_LOG_LEVEL", "INFO").upper(),
        )


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("shiftboard")
    logger.setLevel(getattr(logging, level, logging.INFO))
    if not any(getattr(h, "_shiftboard", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        handler._shiftboard = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
