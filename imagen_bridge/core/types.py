"""
Request and result types shared by the handler, the extractor and the hosts.
Everything here lives for a single request/response cycle.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class FailureKind(str, Enum):
    """Why a generation request did not produce an image."""

    configuration_missing = "configuration_missing"
    invalid_input = "invalid_input"
    rate_limited = "rate_limited"
    upstream_http = "upstream_http"
    upstream_transport = "upstream_transport"
    upstream_parse = "upstream_parse"
    input_rejected = "input_rejected"
    safety_filtered = "safety_filtered"
    unknown_shape = "unknown_shape"


# Wire models for the inbound JSON body (field names match the frontend)

class LogoDataBody(BaseModel):
    mimeType: str
    data: str  # base64, may still carry a data-URI prefix


class GenerateRequestBody(BaseModel):
    prompt: str = ""
    logoData: Optional[LogoDataBody] = None


@dataclass
class LogoData:
    """Reference image forwarded upstream as inline data."""

    mime_type: str
    data: str  # base64 without any "data:...;base64," prefix


@dataclass
class GenerationRequest:
    prompt: str
    logo: Optional[LogoData] = None


@dataclass
class GenerationResult:
    """Outcome of probing an upstream response for image data."""

    image_base64: Optional[str] = None
    mime_type: str = "image/png"
    kind: Optional[FailureKind] = None
    reason: Optional[str] = None
    raw_body: Optional[str] = None  # pretty-printed upstream JSON, for logs only

    @property
    def ok(self) -> bool:
        return self.image_base64 is not None

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.image_base64}"

    @classmethod
    def success(cls, image_base64: str, mime_type: Optional[str] = None) -> "GenerationResult":
        return cls(image_base64=image_base64, mime_type=mime_type or "image/png")

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        reason: str,
        raw_body: Optional[str] = None,
    ) -> "GenerationResult":
        return cls(kind=kind, reason=reason, raw_body=raw_body)
