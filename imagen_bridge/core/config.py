"""Bridge configuration, read once from the environment at startup."""
import os
from dataclasses import dataclass, field, replace
from typing import Optional

from .variants import UpstreamVariant, get_variant


DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMAGEN_MODEL = "imagen-4.0-generate-001"
DEFAULT_GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image-preview"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class BridgeConfig:
    """Settings injected into handlers and hosts.

    The API key is excluded from repr so that logging the config never
    exposes it.
    """
    api_key: Optional[str] = field(default=None, repr=False)
    api_base_url: str = DEFAULT_API_URL
    imagen_model: str = DEFAULT_IMAGEN_MODEL
    gemini_image_model: str = DEFAULT_GEMINI_IMAGE_MODEL
    max_retries: int = 3
    request_timeout: Optional[float] = None  # seconds; None keeps the aiohttp default
    host: str = "0.0.0.0"
    port: int = 7860
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(
            api_key=os.getenv("GEMINI_API_KEY") or None,
            api_base_url=os.getenv("GEMINI_API_URL", DEFAULT_API_URL),
            imagen_model=os.getenv("IMAGEN_MODEL", DEFAULT_IMAGEN_MODEL),
            gemini_image_model=os.getenv("GEMINI_IMAGE_MODEL", DEFAULT_GEMINI_IMAGE_MODEL),
            max_retries=_env_int("BRIDGE_MAX_RETRIES", 3),
            request_timeout=_env_float("BRIDGE_REQUEST_TIMEOUT"),
            host=os.getenv("BRIDGE_HOST", "0.0.0.0"),
            port=_env_int("BRIDGE_PORT", 7860),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def variant(self, name: str) -> UpstreamVariant:
        """Get a built-in variant with the configured model substituted."""
        base = get_variant(name)
        if name == "imagen":
            return replace(base, model=self.imagen_model)
        if name == "gemini-image":
            return replace(base, model=self.gemini_image_model)
        return base
