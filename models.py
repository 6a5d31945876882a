import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful AI assistant. Provide structured, step-by-step responses "
    "with clear explanations and examples when appropriate."
)


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that speaks camelCase JSON but keeps snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModelConfig(CamelModel):
    name: str
    display_name: str
    max_tokens: int
    supports_system: bool = True


MODELS: List[ModelConfig] = [
    ModelConfig(name="gemini-2.0-flash", display_name="Gemini 2.0 Flash", max_tokens=30720),
    ModelConfig(name="gemini-1.5-flash", display_name="Gemini 1.5 Flash", max_tokens=1048576),
]
DEFAULT_MODEL = MODELS[0].name


def find_model(name: Optional[str]) -> Optional[ModelConfig]:
    for model in MODELS:
        if model.name == name:
            return model
    return None


class Step(CamelModel):
    title: str
    description: str
    details: Optional[List[str]] = None


class StructuredResponse(CamelModel):
    summary: Optional[str] = None
    steps: Optional[List[Step]] = None
    key_points: Optional[List[str]] = None
    examples: Optional[List[str]] = None
    related_topics: Optional[List[str]] = None


class Source(CamelModel):
    title: str
    url: str
    snippet: str = ""


class Message(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    model: Optional[str] = None
    structured: Optional[StructuredResponse] = None
    sources: Optional[List[Source]] = None


class ChatSession(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    model: str = DEFAULT_MODEL


class SessionInfo(CamelModel):
    id: str
    name: str
    created_at: datetime
    model: str
    message_count: int


class GenerationConfig(CamelModel):
    """Settings panel values, bounded the way the panel's controls are."""
    model_config = ConfigDict(allow_inf_nan=False)

    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=1000, ge=1)
    top_p: float = Field(default=1, ge=0, le=1)
    frequency_penalty: float = Field(default=0, ge=-2, le=2)
    presence_penalty: float = Field(default=0, ge=-2, le=2)
    system_message: Optional[str] = DEFAULT_SYSTEM_MESSAGE


class SettingsUpdate(CamelModel):
    model_config = ConfigDict(allow_inf_nan=False)

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    system_message: Optional[str] = None


# Proxy endpoint envelopes

class GeminiRequest(CamelModel):
    prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.7
    top_p: float = 1
    max_tokens: int = 256


class GeminiResponse(CamelModel):
    content: str


# Chat exchange endpoint envelopes

class ChatRequest(CamelModel):
    messages: List[Message] = Field(default_factory=list)
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1
    system_message: Optional[str] = None


class ChatResponse(CamelModel):
    content: str
    structured: Optional[StructuredResponse] = None
    model: Optional[str] = None


class ExchangeSuccess(CamelModel):
    kind: Literal["success"] = "success"
    content: str
    structured: Optional[StructuredResponse] = None
    model: Optional[str] = None


class ExchangeFailure(CamelModel):
    kind: Literal["failure"] = "failure"
    status: Optional[int] = None
    error: str


ExchangeResult = Union[ExchangeSuccess, ExchangeFailure]


# Application routes

class SubmitRequest(CamelModel):
    text: str = ""


class SubmitResponse(CamelModel):
    messages: List[Message]
    error: Optional[str] = None


class AppStateResponse(CamelModel):
    sessions: List[SessionInfo]
    current_session_id: str
    messages: List[Message]
    settings: GenerationConfig
    error: Optional[str] = None
    is_loading: bool = False
    models: List[ModelConfig] = Field(default_factory=lambda: list(MODELS))


class ExportDocument(CamelModel):
    session: Optional[ChatSession] = None
    settings: Optional[SettingsUpdate] = None
    exported_at: Optional[datetime] = None
