import json
import logging
import os
import re
from typing import List, Optional

import pydantic
import requests

from errors import ConfigurationError, TransportError, UpstreamError, ValidationError
from models import Message, StructuredResponse

# Get logger and constants
logger = logging.getLogger(__name__)
GEMINI_API_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models")
BASELINE_MODEL = "gemini-2.0-flash"
NO_RESPONSE = "No response generated"
TOP_K = 40

MODEL_MAP = {
    "gemini-2.0-flash": "gemini-2.0-flash",
    "gemini-1.5-flash": "gemini-1.5-flash-latest",
    "gemini-pro": "gemini-pro",
}

SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]

_JSON_BLOCK = re.compile(r"```json\s*(\{.*?\})\s*```", re.DOTALL)


def resolve_model(model: str) -> str:
    """Translate a friendly model name to the upstream id, falling back to the baseline."""
    return MODEL_MAP.get(model, BASELINE_MODEL)


def get_api_key() -> str:
    # Read per request so a key exported after startup is picked up.
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY not found in environment variables")
    return api_key


def build_gemini_payload(prompt: str, temperature: float, top_p: float, max_tokens: int) -> dict:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "topK": TOP_K,
            "topP": top_p,
            "maxOutputTokens": max_tokens,
        },
        "safetySettings": SAFETY_SETTINGS,
    }


def parse_gemini_response(response) -> str:
    """Pull the first candidate's first text part, or the placeholder when there is none."""
    try:
        data = response.json()
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning(f"Could not extract text from Gemini response: {e}")
        return NO_RESPONSE

    if not isinstance(text, str) or not text:
        return NO_RESPONSE
    return text


def make_gemini_request(prompt: str, model: str, temperature: float, top_p: float, max_tokens: int) -> str:
    """Forward one prompt to the Gemini generateContent API and return the reply text."""
    logger.info(f"Proxy called with model: {model}, has_api_key: {bool(os.getenv('GEMINI_API_KEY'))}")
    api_key = get_api_key()

    if not prompt or not model:
        raise ValidationError("Missing prompt or model.")

    gemini_model = resolve_model(model)
    api_url = f"{GEMINI_API_URL}/{gemini_model}:generateContent"
    logger.info(f"Calling Gemini API with model: {gemini_model}")

    try:
        response = requests.post(
            api_url,
            params={"key": api_key},
            json=build_gemini_payload(prompt, temperature, top_p, max_tokens),
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Network error when calling Gemini API: {str(e)}")
        raise TransportError(f"Server error: {str(e)}")

    logger.info(f"Gemini API response status: {response.status_code}")

    if not response.ok:
        logger.error(f"Gemini API error: {response.text}")
        raise UpstreamError(response.status_code, response.text)

    return parse_gemini_response(response)


def build_prompt(messages: List[Message], system_message: Optional[str] = None) -> str:
    """Fold the transcript into the single content block the upstream API receives."""
    lines = []
    if system_message and system_message.strip():
        lines.append(f"System: {system_message.strip()}")
        lines.append("")
    for msg in messages:
        if msg.role == "user":
            lines.append(f"User: {msg.content}")
        elif msg.role == "assistant":
            lines.append(f"Assistant: {msg.content}")
        else:
            lines.append(f"System: {msg.content}")
    lines.append("Assistant:")
    return "\n".join(lines)


def extract_structured(content: str) -> Optional[StructuredResponse]:
    """Find a fenced json block in the reply that reads as a StructuredResponse."""
    match = _JSON_BLOCK.search(content)
    if not match:
        return None

    try:
        data = json.loads(match.group(1))
        structured = StructuredResponse.model_validate(data)
    except (json.JSONDecodeError, pydantic.ValidationError) as e:
        logger.debug(f"Ignoring unstructured json block: {e}")
        return None

    if not structured.model_dump(exclude_none=True):
        return None
    return structured
