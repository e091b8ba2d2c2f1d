import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from relaychat.images import FALLBACK_JPEG_QUALITY, JPEG_QUALITY, MAX_IMAGE_BYTES

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4.1"


class ConfigError(Exception):
    pass


def get_optional_env(name: str, default: str) -> str:
    return os.environ.get(name) or default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class ChatConfig:
    api_url: str = field(
        default_factory=lambda: get_optional_env("RELAYCHAT_API_URL", DEFAULT_API_URL)
    )
    model: str = field(
        default_factory=lambda: get_optional_env("RELAYCHAT_MODEL", DEFAULT_MODEL)
    )
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("RELAYCHAT_TIMEOUT", 60.0)
    )
    data_file: str = field(
        default_factory=lambda: get_optional_env(
            "RELAYCHAT_DATA_FILE", "~/.relaychat/store.json"
        )
    )
    namespace: str = "relaychat"
    max_image_bytes: int = MAX_IMAGE_BYTES
    jpeg_quality: int = JPEG_QUALITY
    fallback_jpeg_quality: int = FALLBACK_JPEG_QUALITY

    @classmethod
    def from_env(cls) -> "ChatConfig":
        return cls()

    def validate(self) -> None:
        parsed = urlparse(self.api_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"api_url must be an http(s) URL, got {self.api_url!r}")
        if not self.model.strip():
            raise ConfigError("model must not be empty")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be > 0")
        if self.max_image_bytes <= 0:
            raise ConfigError("max_image_bytes must be > 0")
        for name in ("jpeg_quality", "fallback_jpeg_quality"):
            value = getattr(self, name)
            if not 1 <= value <= 95:
                raise ConfigError(f"{name} must be between 1 and 95")
        logger.debug(f"Configuration validated (model={self.model}, url={self.api_url})")
