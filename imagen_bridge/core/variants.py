"""Upstream model variants.

Each variant describes one Generative Language endpoint: which model is
called, how the request payload is shaped, and how a successful image is
returned to the frontend. The handler is the same for all of them.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum

from .types import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


class PayloadShape(str, Enum):
    predict = "predict"
    generate_content = "generateContent"


class ResponseFormat(str, Enum):
    data_uri = "data_uri"  # {"imageUrl": "data:image/png;base64,..."}
    base64 = "base64"      # {"base64Data": "..."}


@dataclass(frozen=True)
class UpstreamVariant:
    name: str
    model: str
    shape: PayloadShape
    response_format: ResponseFormat
    parameters: dict = field(default_factory=dict)

    def endpoint(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/models/{self.model}:{self.shape.value}"

    def build_payload(self, request: GenerationRequest) -> dict:
        if self.shape == PayloadShape.predict:
            if request.logo is not None:
                logger.debug(f"Variant {self.name} is prompt-only, ignoring logo data")
            return {
                "instances": [{"prompt": request.prompt}],
                "parameters": dict(self.parameters),
            }

        parts: list[dict] = [{"text": request.prompt}]
        if request.logo is not None:
            parts.append({
                "inlineData": {
                    "mimeType": request.logo.mime_type,
                    "data": request.logo.data,
                }
            })
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

    def success_body(self, result: GenerationResult) -> dict:
        if self.response_format == ResponseFormat.data_uri:
            return {"imageUrl": result.data_uri}
        return {"base64Data": result.image_base64}


IMAGEN = UpstreamVariant(
    name="imagen",
    model="imagen-4.0-generate-001",
    shape=PayloadShape.predict,
    response_format=ResponseFormat.data_uri,
    parameters={"sampleCount": 1, "aspectRatio": "1:1"},
)

GEMINI_IMAGE = UpstreamVariant(
    name="gemini-image",
    model="gemini-2.5-flash-image-preview",
    shape=PayloadShape.generate_content,
    response_format=ResponseFormat.base64,
)

VARIANTS: dict[str, UpstreamVariant] = {
    IMAGEN.name: IMAGEN,
    GEMINI_IMAGE.name: GEMINI_IMAGE,
}


def get_variant(name: str) -> UpstreamVariant:
    """Look up a built-in variant by name."""
    try:
        return VARIANTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown upstream variant: {name} (expected one of {', '.join(VARIANTS)})"
        ) from None
