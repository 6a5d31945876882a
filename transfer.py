import json
import logging
import time
from typing import Optional, Tuple

import pydantic

from errors import FormatError
from models import (
    DEFAULT_MODEL,
    ChatSession,
    ExportDocument,
    GenerationConfig,
    SettingsUpdate,
    find_model,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


def export_filename(session_id: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ai-chat-{session_id}-{now_ms}.json"


def export_document(session: ChatSession, settings: GenerationConfig) -> dict:
    """Serialize the session and the full generation settings for download."""
    return {
        "session": session.model_dump(mode="json", by_alias=True),
        "settings": settings.model_dump(mode="json", by_alias=True),
        "exportedAt": utc_now().isoformat(),
    }


def parse_document(raw) -> ExportDocument:
    """Parse an exported document, raising FormatError for anything malformed."""
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(data, dict):
            raise FormatError()
        return ExportDocument.model_validate(data)
    except (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError) as e:
        logger.error(f"Rejected import document: {e}")
        raise FormatError()


def imported_session(session: ChatSession) -> ChatSession:
    """Copy of an imported session under a fresh id, keeping its message log."""
    return session.model_copy(update={
        "id": new_id(),
        "name": f"{session.name} (Imported)",
        "messages": list(session.messages),
    })


def _clamp(name: str, value: float, low: float, high: float) -> float:
    clamped = min(max(value, low), high)
    if clamped != value:
        logger.warning(f"Imported {name}={value} is out of range, using {clamped}")
    return clamped


def merge_settings(current: GenerationConfig, incoming: SettingsUpdate) -> GenerationConfig:
    """Overwrite current settings with imported ones, clamped into the panel's bounds.

    Fields missing from the document keep their current value.
    """
    values = current.model_dump()
    values.update(incoming.model_dump(exclude_unset=True, exclude_none=True))
    if incoming.system_message is None and "system_message" in incoming.model_fields_set:
        values["system_message"] = None

    model = find_model(values["model"])
    if model is None:
        logger.warning(f"Imported model {values['model']} is unknown, using {DEFAULT_MODEL}")
        model = find_model(DEFAULT_MODEL)
    values["model"] = model.name

    values["temperature"] = _clamp("temperature", values["temperature"], 0, 2)
    values["top_p"] = _clamp("topP", values["top_p"], 0, 1)
    values["max_tokens"] = int(_clamp("maxTokens", values["max_tokens"], 1, model.max_tokens))
    values["frequency_penalty"] = _clamp("frequencyPenalty", values["frequency_penalty"], -2, 2)
    values["presence_penalty"] = _clamp("presencePenalty", values["presence_penalty"], -2, 2)
    try:
        return GenerationConfig(**values)
    except pydantic.ValidationError as e:
        logger.error(f"Rejected imported settings: {e}")
        raise FormatError()


def read_import(raw, current: GenerationConfig) -> Tuple[Optional[ChatSession], GenerationConfig]:
    """Validate a whole document up front so a bad one changes nothing."""
    document = parse_document(raw)
    session = imported_session(document.session) if document.session is not None else None
    settings = merge_settings(current, document.settings) if document.settings is not None else current
    return session, settings
