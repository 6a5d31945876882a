import logging
import os
import traceback
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import aiohttp
import pydantic

from errors import ExchangeInProgressError, ValidationError
from models import (
    ChatRequest,
    ExchangeFailure,
    ExchangeResult,
    ExchangeSuccess,
    GenerationConfig,
    Message,
    SettingsUpdate,
    find_model,
)
from session_store import SessionStore
from transfer import export_document, export_filename, read_import

logger = logging.getLogger(__name__)
CHAT_API_URL = os.getenv("CHAT_API_URL", "http://localhost:8000/api/chat")
NETWORK_ERROR = "Network error occurred"


def error_reply(error: str) -> str:
    return f"Sorry, I encountered an error: {error}. Please check your API configuration and try again."


# Commands, one per user action

@dataclass
class NewSession:
    pass


@dataclass
class SwitchSession:
    session_id: str


@dataclass
class ClearChat:
    pass


@dataclass
class Submit:
    text: str


@dataclass
class UpdateSettings:
    changes: SettingsUpdate


@dataclass
class ImportChat:
    raw: bytes


@dataclass
class ExportChat:
    now_ms: Optional[int] = None


@dataclass
class ExportResult:
    filename: str
    document: dict = field(default_factory=dict)


class HttpChatTransport:
    """Posts exchange requests to the chat endpoint with aiohttp."""

    def __init__(self, url: str = CHAT_API_URL):
        self.url = url

    async def send(self, request: ChatRequest) -> ExchangeResult:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.url, json=payload) as response:
                    status = response.status
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = None
        except aiohttp.ClientError as e:
            logger.error(f"Network error when calling chat endpoint: {str(e)}")
            return ExchangeFailure(error=NETWORK_ERROR)

        return parse_exchange_response(status, data)


def parse_exchange_response(status: int, data) -> ExchangeResult:
    """Map a chat endpoint reply onto the success or failure variant."""
    if not 200 <= status < 300:
        error = None
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            error = data["error"]
        return ExchangeFailure(status=status, error=error or f"HTTP error! status: {status}")

    if not isinstance(data, dict):
        return ExchangeFailure(status=status, error="Malformed response from chat service")
    try:
        return ExchangeSuccess.model_validate({k: v for k, v in data.items() if k != "kind"})
    except pydantic.ValidationError as e:
        logger.error(f"Chat endpoint returned an unexpected body: {e}")
        return ExchangeFailure(status=status, error="Malformed response from chat service")


class ChatController:
    """Application state plus the handlers that are allowed to change it."""

    def __init__(self, transport=None, store: Optional[SessionStore] = None,
                 settings: Optional[GenerationConfig] = None):
        self.transport = transport or HttpChatTransport()
        self.store = store or SessionStore()
        self.settings = settings or GenerationConfig()
        self.is_loading = False

    async def dispatch(self, command):
        if isinstance(command, Submit):
            return await self.submit(command.text)
        if isinstance(command, NewSession):
            return self.store.create_session(self.settings.model)
        if isinstance(command, SwitchSession):
            return self.store.switch_session(command.session_id)
        if isinstance(command, ClearChat):
            self.store.clear_current()
            self.store.error = None
            return None
        if isinstance(command, UpdateSettings):
            return self.update_settings(command.changes)
        if isinstance(command, ImportChat):
            return self.import_chat(command.raw)
        if isinstance(command, ExportChat):
            return self.export_chat(command.now_ms)
        raise TypeError(f"Unknown command: {command!r}")

    async def submit(self, text: str) -> List[Message]:
        """Run one exchange and return the messages it appended."""
        content = text.strip()
        if not content:
            return []
        if self.is_loading:
            raise ExchangeInProgressError()

        session_id = self.store.current_id
        self.store.error = None
        self.is_loading = True

        user_msg = Message(role="user", content=content, model=self.settings.model)
        self.store.append_to_session(session_id, user_msg)

        system_message = self.settings.system_message
        request = ChatRequest(
            messages=list(self.store.get(session_id).messages),
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            top_p=self.settings.top_p,
            system_message=system_message if system_message and system_message.strip() else None,
        )
        logger.info(f"Starting exchange on session {session_id} with {len(request.messages)} messages")

        try:
            result = await self.transport.send(request)
        except Exception as e:
            logger.error(f"Unexpected error during exchange: {str(e)}")
            logger.error(f"Traceback: {traceback.format_exc()}")
            result = ExchangeFailure(error=NETWORK_ERROR)
        finally:
            self.is_loading = False

        if isinstance(result, ExchangeSuccess):
            reply = Message(
                role="assistant",
                content=result.content,
                structured=result.structured,
                model=result.model or request.model,
            )
            logger.info(f"Exchange succeeded with reply length: {len(reply.content)}")
        else:
            if session_id == self.store.current_id:
                self.store.error = result.error
            reply = Message(role="assistant", content=error_reply(result.error), model=request.model)
            logger.warning(f"Exchange failed: {result.error}")

        self.store.append_to_session(session_id, reply)
        return [user_msg, reply]

    def update_settings(self, changes: SettingsUpdate) -> GenerationConfig:
        values = self.settings.model_dump()
        values.update(changes.model_dump(exclude_unset=True))

        model = find_model(values["model"])
        if model is None:
            raise ValidationError(f"Unknown model: {values['model']}")
        if values["max_tokens"] is not None and values["max_tokens"] > model.max_tokens:
            if "max_tokens" in changes.model_fields_set:
                raise ValidationError(f"maxTokens must be at most {model.max_tokens} for {model.name}")
            # Switching to a smaller model shrinks the current limit to fit
            logger.info(f"Lowering maxTokens from {values['max_tokens']} to {model.max_tokens} for {model.name}")
            values["max_tokens"] = model.max_tokens
        try:
            self.settings = GenerationConfig(**values)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid settings: {e.errors()[0]['msg']}")
        return self.settings

    def import_chat(self, raw) -> Tuple[Optional[str], GenerationConfig]:
        session, settings = read_import(raw, self.settings)
        if session is not None:
            self.store.add_session(session)
        self.settings = settings
        logger.info(f"Imported chat into session {session.id if session else None}")
        return (session.id if session else None), settings

    def export_chat(self, now_ms: Optional[int] = None) -> ExportResult:
        session = self.store.current
        logger.info(f"Exporting session {session.id}")
        return ExportResult(
            filename=export_filename(session.id, now_ms),
            document=export_document(session, self.settings),
        )
