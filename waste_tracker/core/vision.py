"""Claude vision integration: turns a photo of food waste into a JSON analysis.

analyze_food_waste sends the image to the Anthropic Messages API with the
schema below and returns the parsed JSON object. It does no defaulting; the
ingestion coordinator maps the raw dict to a WasteAnalysis. SDK failures are
translated into the CollaboratorError subclasses so callers can tell a quota
problem from a bad key from an outage.
"""

import base64
import json
import logging
import re

import anthropic

from waste_tracker.config import get_api_key, get_vision_model
from waste_tracker.errors import (
    AccessDeniedError,
    CollaboratorError,
    InvalidInputError,
    MalformedResponseError,
    MissingCredentialError,
    QuotaExceededError,
    RateLimitedError,
    UpstreamUnavailableError,
)

logger = logging.getLogger("waste_tracker.vision")

# JSON schema template included in the prompt so Claude returns structured data.
ANALYSIS_SCHEMA = """
{
  "items": [
    {
      "name": "chicken breast",
      "category": "main dish",
      "estimatedAmount": "about half a portion",
      "condition": "partially eaten",
      "estimatedValue": 2.5
    }
  ],
  "totalEstimatedValue": 2.5,
  "estimatedWaste": {"weight": "150 g", "percentage": "50%"},
  "confidence": 0.8,
  "uncertaintyDisclaimer": "",
  "needsBetterPhoto": false,
  "reasonsUncertain": [],
  "notes": "Likely an oversized portion."
}
"""

ANALYSIS_PROMPT = f"""This photo is being logged as FOOD WASTE. Identify what was thrown away.

For each visible food item give:
- name: specific (e.g. "mashed potatoes", not "side")
- category: main dish, side, appetizer, dessert, bread, beverage or produce
- estimatedAmount: how much of it is left
- condition: untouched, partially eaten, spoiled, expired, stale or uncertain
- estimatedValue: typical US cost in dollars of the wasted amount, rounded to $0.10

Be careful with spoilage. Glare, reflections through plastic, bright spots and
compression noise are not mold. Only call something spoiled when the evidence
is unambiguous; otherwise use "uncertain" and explain in uncertaintyDisclaimer.
If the photo is blurry, dark or occluded, lower confidence (0 to 1) and set
needsBetterPhoto to true.

Keep estimates consistent: identical-looking items get identical values, and
prefer conservative typical prices.

Return JSON matching this schema exactly:
{ANALYSIS_SCHEMA}

Return only the JSON, wrapped in ```json``` code fences."""

_QUOTA_MARKERS = ("quota", "credit balance", "billing")


def _get_client() -> anthropic.Anthropic:
    """Create an Anthropic client. Raises MissingCredentialError if no key is set."""
    api_key = get_api_key()
    if not api_key:
        raise MissingCredentialError(
            "ANTHROPIC_API_KEY is not set. Add it to your environment or .env file."
        )
    return anthropic.Anthropic(api_key=api_key)


def _extract_json(text: str) -> dict:
    """Pull the JSON object out of Claude's reply (fenced block or outer braces)."""
    match = re.search(r"```(?:json)?\s*([\s\S]+?)\s*```", text)
    if match:
        json_str = match.group(1)
    else:
        braces = re.search(r"\{[\s\S]*\}", text)
        json_str = braces.group(0) if braces else text.strip()

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            "The AI did not return valid JSON.", details={"reply": text[:500]}
        ) from e
    if not isinstance(data, dict):
        raise MalformedResponseError("The AI returned JSON that is not an object.")
    return data


def translate_error(error: anthropic.APIError) -> CollaboratorError:
    """Map an Anthropic SDK exception to the matching CollaboratorError."""
    message = str(getattr(error, "message", None) or error)
    lowered = message.lower()
    details = {"upstream": type(error).__name__}
    status = getattr(error, "status_code", None)
    if status is not None:
        details["status"] = status

    if isinstance(error, anthropic.AuthenticationError):
        return MissingCredentialError(
            "The Anthropic API key was rejected. Check ANTHROPIC_API_KEY.", details=details
        )
    if isinstance(error, anthropic.PermissionDeniedError):
        return AccessDeniedError(
            "The Anthropic API key is not allowed to use this model.", details=details
        )
    if isinstance(error, (anthropic.RateLimitError, anthropic.BadRequestError)) and any(
        marker in lowered for marker in _QUOTA_MARKERS
    ):
        return QuotaExceededError(
            "Anthropic API quota or credit exhausted. Check your plan and billing.", details=details
        )
    if isinstance(error, anthropic.RateLimitError):
        return RateLimitedError("Anthropic API rate limit hit. Wait a moment and retry.", details=details)
    if isinstance(error, (anthropic.BadRequestError, anthropic.UnprocessableEntityError)):
        return InvalidInputError(
            "The image was rejected by the vision API. Check the format and try again.", details=details
        )
    if isinstance(error, anthropic.APIConnectionError):
        return UpstreamUnavailableError("Could not reach the Anthropic API.", details=details)
    if isinstance(error, anthropic.NotFoundError):
        return InvalidInputError(
            f"The vision model was not found. Check VISION_MODEL ({get_vision_model()}).", details=details
        )
    if isinstance(error, anthropic.APIStatusError) and error.status_code >= 500:
        return UpstreamUnavailableError("The Anthropic API is temporarily unavailable.", details=details)
    if isinstance(error, anthropic.APIStatusError):
        return InvalidInputError(f"The vision API rejected the request: {message}", details=details)
    if isinstance(error, anthropic.APIResponseValidationError):
        return MalformedResponseError("The vision API returned an unexpected response.", details=details)
    return UpstreamUnavailableError(f"AI analysis failed: {message}", details=details)


def analyze_food_waste(image_bytes: bytes, media_type: str = "image/jpeg") -> dict:
    """Analyse a food waste photo and return the raw JSON analysis."""
    client = _get_client()
    model = get_vision_model()
    data = base64.standard_b64encode(image_bytes).decode("utf-8")
    content = [
        {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}},
        {"type": "text", "text": ANALYSIS_PROMPT},
    ]

    try:
        message = client.messages.create(
            model=model,
            max_tokens=2048,
            temperature=0.4,
            messages=[{"role": "user", "content": content}],
        )
    except anthropic.APIError as e:
        logger.warning("Vision call to %s failed: %s", model, e)
        raise translate_error(e) from e

    text = "".join(getattr(block, "text", "") for block in message.content)
    return _extract_json(text)
