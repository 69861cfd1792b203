"""Framework-agnostic request handlers for the Bridge API.

These handlers contain pure business logic without any framework-specific code.
They are used by both the FastAPI app and the plain aiohttp host.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from .aiohttp_request_manager import AiohttpRequestManager, UpstreamError
from .config import BridgeConfig
from .extractor import extract_image
from .types import FailureKind, GenerateRequestBody, GenerationRequest, LogoData
from .variants import UpstreamVariant

logger = logging.getLogger(__name__)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

API_KEY_HEADER = "x-goog-api-key"

CONFIG_MISSING_MESSAGE = "CRITICAL: API Key not configured on the server."


@dataclass
class ApiResponse:
    """Standard API response wrapper."""
    data: Optional[dict]
    status: int = 200
    headers: dict = field(default_factory=lambda: dict(CORS_HEADERS))

    @property
    def body(self) -> str:
        return json.dumps(self.data) if self.data is not None else ""


def error_response(message: str, status: int) -> ApiResponse:
    return ApiResponse(data={"error": message}, status=status)


class InvalidRequestError(ValueError):
    kind = FailureKind.invalid_input


def strip_data_uri(data: str) -> str:
    """Drop a "data:<mime>;base64," style prefix from base64 text."""
    if "," in data:
        return data.split(",", 1)[1]
    return data


def parse_generation_request(raw_body: Optional[str | bytes]) -> GenerationRequest:
    """Parse and validate an inbound JSON body.

    Bytes are decoded as UTF-8 regardless of any charset the client declared.

    Raises:
        InvalidRequestError: undecodable or malformed JSON, blank prompt or bad logoData
    """
    if isinstance(raw_body, bytes):
        try:
            raw_body = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidRequestError("Invalid request body: body is not valid UTF-8") from e

    try:
        body = GenerateRequestBody.model_validate_json(raw_body or "")
    except ValidationError as e:
        errors = e.errors()
        if any(err["loc"] and err["loc"][0] == "prompt" for err in errors):
            raise InvalidRequestError("Missing prompt") from e
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in errors
        )
        raise InvalidRequestError(f"Invalid request body: {details}") from e

    if not body.prompt.strip():
        raise InvalidRequestError("Missing prompt")

    logo = None
    if body.logoData is not None:
        logo = LogoData(
            mime_type=body.logoData.mimeType,
            data=strip_data_uri(body.logoData.data),
        )
    return GenerationRequest(prompt=body.prompt, logo=logo)


async def handle_health() -> ApiResponse:
    """Handle health check request."""
    return ApiResponse(data={"status": "ok"})


class GenerationHandler:
    """Proxies one inbound generation request to an upstream variant."""

    def __init__(
        self,
        config: BridgeConfig,
        variant: UpstreamVariant,
        requests: Optional[AiohttpRequestManager] = None,
    ):
        self.config = config
        self.variant = variant
        self.requests = requests or AiohttpRequestManager(timeout=config.request_timeout)

    async def handle(self, method: str, raw_body: Optional[str | bytes]) -> ApiResponse:
        """Handle a generation request.

        Returns:
            ApiResponse with the image body, or an error with status 400/405/500.
            CORS headers are set on every response.
        """
        method = (method or "").upper()

        if method == "OPTIONS":
            return ApiResponse(data=None)

        if method != "POST":
            return error_response("Method Not Allowed", 405)

        if not self.config.has_api_key:
            logger.error(
                f"[{self.variant.name}] Refusing request "
                f"({FailureKind.configuration_missing.value}): GEMINI_API_KEY is not set"
            )
            return error_response(CONFIG_MISSING_MESSAGE, 500)

        try:
            request = parse_generation_request(raw_body)
        except InvalidRequestError as e:
            logger.info(f"[{self.variant.name}] Bad request ({e.kind.value}): {e}")
            return error_response(str(e), 400)

        try:
            payload = self.variant.build_payload(request)
            response = await self.requests.post_json(
                self.variant.endpoint(self.config.api_base_url),
                payload,
                headers={API_KEY_HEADER: self.config.api_key},
                max_retries=self.config.max_retries,
            )
            result = extract_image(response)
        except UpstreamError as e:
            logger.error(f"[{self.variant.name}] Upstream call failed ({e.kind.value}): {e}")
            message = e.upstream_message or e.message
            return error_response(f"Generation Error: Failed to generate image. {message}", 500)
        except Exception as e:
            logger.exception(f"[{self.variant.name}] Internal error while generating image")
            return error_response(f"Generation Error: Failed to generate image. {e}", 500)

        if result.ok:
            return ApiResponse(data=self.variant.success_body(result))

        logger.warning(f"[{self.variant.name}] No image returned ({result.kind.value}): {result.reason}")
        status = 400 if result.kind == FailureKind.input_rejected else 500
        return error_response(f"Generation Error: {result.reason}", status)

    async def close(self):
        await self.requests.close()


# Route path -> upstream variant name, shared by both hosts
GENERATION_ROUTES = {
    "/api/generate-image": "imagen",
    "/api/generate-jersey": "gemini-image",
}


def build_handlers(
    config: BridgeConfig,
    requests: Optional[AiohttpRequestManager] = None,
) -> dict[str, GenerationHandler]:
    """Create one handler per generation route, sharing a request manager."""
    requests = requests or AiohttpRequestManager(timeout=config.request_timeout)
    return {
        path: GenerationHandler(config, config.variant(name), requests)
        for path, name in GENERATION_ROUTES.items()
    }
