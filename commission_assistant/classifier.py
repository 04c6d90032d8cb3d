"""
Reply classifier: turns the raw upstream model text into a ParsedReply.

The model is prompted to answer either with a JSON intent object, a JSON
navigate object, or free text. Anything that is not one of the two JSON
shapes is passed through as plain text.
"""

import json
import logging
import re

from pydantic import ValidationError

from .errors import InternalError
from .models import IntentEnvelope, NavigateEnvelope, ParsedReply, TextEnvelope

logger = logging.getLogger("commission-assistant.classifier")

_LEADING_FENCE = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```\s*$")


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = _LEADING_FENCE.sub("", text, count=1)
    return _TRAILING_FENCE.sub("", text, count=1).strip()


def classify(raw_text: str) -> ParsedReply:
    """
    Classify the upstream reply.

    Raises InternalError when the upstream returned nothing at all.
    """
    if raw_text is None or not raw_text.strip():
        raise InternalError("Upstream model returned an empty reply")

    cleaned = strip_fences(raw_text)
    try:
        decoded = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        logger.debug("Reply is not JSON, treating as plain text")
        return TextEnvelope(text=raw_text)

    if not isinstance(decoded, dict):
        return TextEnvelope(text=raw_text)

    if "intent" in decoded:
        try:
            envelope = IntentEnvelope.model_validate(
                {"intent": decoded["intent"], "params": decoded.get("params")}
            )
            logger.info(f"Classified reply as intent '{envelope.intent}'")
            return envelope
        except ValidationError as e:
            logger.warning(f"Malformed intent object, treating as text: {e.error_count()} errors")

    action = decoded.get("action")
    if isinstance(action, dict) and action.get("type") == "navigate":
        try:
            envelope = NavigateEnvelope.model_validate(
                {"action": action, "reply": decoded.get("reply")}
            )
            logger.info(f"Classified reply as navigation to '{envelope.action.target}'")
            return envelope
        except ValidationError as e:
            logger.warning(f"Malformed navigate object, treating as text: {e.error_count()} errors")

    return TextEnvelope(text=raw_text)
