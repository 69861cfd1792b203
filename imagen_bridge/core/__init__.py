"""Core module containing framework-agnostic business logic."""
from .types import FailureKind, GenerationRequest, GenerationResult, LogoData
from .variants import (
    GEMINI_IMAGE,
    IMAGEN,
    VARIANTS,
    PayloadShape,
    ResponseFormat,
    UpstreamVariant,
    get_variant,
)
from .config import BridgeConfig
from .aiohttp_request_manager import (
    BACKOFF_WAIT,
    AiohttpRequestManager,
    RateLimitExceeded,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTransportError,
)
from .extractor import extract_image
from .handlers import (
    CORS_HEADERS,
    GENERATION_ROUTES,
    ApiResponse,
    GenerationHandler,
    InvalidRequestError,
    build_handlers,
    handle_health,
    parse_generation_request,
    strip_data_uri,
)

__all__ = [
    # Types
    "FailureKind",
    "GenerationRequest",
    "GenerationResult",
    "LogoData",
    # Variants
    "GEMINI_IMAGE",
    "IMAGEN",
    "VARIANTS",
    "PayloadShape",
    "ResponseFormat",
    "UpstreamVariant",
    "get_variant",
    # Config
    "BridgeConfig",
    # Upstream calls
    "BACKOFF_WAIT",
    "AiohttpRequestManager",
    "RateLimitExceeded",
    "UpstreamError",
    "UpstreamHTTPError",
    "UpstreamParseError",
    "UpstreamTransportError",
    "extract_image",
    # Handlers
    "CORS_HEADERS",
    "GENERATION_ROUTES",
    "ApiResponse",
    "GenerationHandler",
    "InvalidRequestError",
    "build_handlers",
    "handle_health",
    "parse_generation_request",
    "strip_data_uri",
]
