"""Locate the generated image in a Generative Language API response."""
import json
import logging
from typing import Optional

from .types import FailureKind, GenerationResult

logger = logging.getLogger(__name__)


def _first(items) -> Optional[dict]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def _prediction_image(response: dict) -> Optional[GenerationResult]:
    prediction = _first(response.get("predictions"))
    if prediction and prediction.get("bytesBase64Encoded"):
        return GenerationResult.success(
            prediction["bytesBase64Encoded"], prediction.get("mimeType")
        )
    return None


def _inline_data_image(response: dict) -> Optional[GenerationResult]:
    candidate = _first(response.get("candidates"))
    if not candidate:
        return None
    content = candidate.get("content") or {}
    for part in content.get("parts") or []:
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if isinstance(inline, dict) and inline.get("data"):
            return GenerationResult.success(inline["data"], inline.get("mimeType"))
    return None


def format_safety_ratings(ratings: list) -> str:
    """Render safety ratings as "CATEGORY: PROBABILITY; ..."."""
    return "; ".join(
        f"{rating.get('category', 'UNKNOWN')}: {rating.get('probability', 'UNKNOWN')}"
        for rating in ratings
        if isinstance(rating, dict)
    )


def extract_image(response: dict) -> GenerationResult:
    """Probe a parsed API response for image data.

    The predict shape (``predictions[0].bytesBase64Encoded``) is checked first,
    then the content shape (``candidates[0].content.parts[].inlineData``).
    When neither carries an image the failure is classified as rejected input,
    a safety filter hit, or an unrecognised response.
    """
    if not isinstance(response, dict):
        response = {}

    result = _prediction_image(response) or _inline_data_image(response)
    if result is not None:
        return result

    block_reason = (response.get("promptFeedback") or {}).get("blockReason")
    candidates = response.get("candidates")

    if candidates == [] or (candidates is None and block_reason):
        reason = "The prompt or input image was rejected by the API (likely a safety policy)."
        if block_reason:
            reason = f"{reason} Block reason: {block_reason}"
        return GenerationResult.failure(FailureKind.input_rejected, reason)

    candidate = _first(candidates)
    ratings = candidate.get("safetyRatings") if candidate else None
    if ratings:
        return GenerationResult.failure(
            FailureKind.safety_filtered,
            f"Image was filtered by safety systems. Ratings: {format_safety_ratings(ratings)}",
        )

    prediction = _first(response.get("predictions"))
    if prediction and prediction.get("raiFilteredReason"):
        return GenerationResult.failure(
            FailureKind.safety_filtered,
            f"Image was filtered by safety systems. {prediction['raiFilteredReason']}",
        )

    raw_body = json.dumps(response, indent=2)
    logger.error(f"API response missing image data. Full response: {raw_body}")
    return GenerationResult.failure(
        FailureKind.unknown_shape,
        "Could not extract image data from API response (check server logs for full response).",
        raw_body=raw_body,
    )
