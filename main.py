from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
import traceback
import logging
import os
from pathlib import Path

from controller import (
    ChatController,
    ClearChat,
    ExportChat,
    ImportChat,
    NewSession,
    Submit,
    SwitchSession,
    UpdateSettings,
    CHAT_API_URL,
)
from errors import ChatServiceError, ValidationError
from gemini_utils import GEMINI_API_URL, build_prompt, extract_structured, make_gemini_request
from models import (
    AppStateResponse,
    ChatRequest,
    ChatResponse,
    GeminiRequest,
    GeminiResponse,
    Message,
    SettingsUpdate,
    SubmitRequest,
    SubmitResponse,
)
from renderer import RenderedMessage, render_message, to_html

LOG_FILE = os.getenv("LOG_FILE", "gemini_chat.log")
STATIC_DIR = Path(__file__).parent

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOG_FILE),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

# Single-user application state driven by the page
controller = ChatController()


def get_controller() -> ChatController:
    return controller


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Gemini chat application starting up")
    logger.info(f"Gemini API URL: {GEMINI_API_URL}")
    logger.info(f"Chat API URL: {CHAT_API_URL}")
    if not os.getenv("GEMINI_API_KEY"):
        logger.warning("GEMINI_API_KEY is not set - proxy requests will fail until it is")
    yield
    logger.info("Application shutdown complete")


app = FastAPI(title="Gemini Chat", lifespan=lifespan)

# Add CORS middleware to allow frontend requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request body for {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": "Invalid request body."}, status_code=400)


# Serve the main page
@app.get("/")
async def read_index():
    return FileResponse(STATIC_DIR / 'index.html')

# Serve the JavaScript file
@app.get("/app.js")
async def read_app_js():
    return FileResponse(STATIC_DIR / 'app.js', media_type='application/javascript')


def _generate(prompt, model, temperature, top_p, max_tokens) -> str:
    try:
        return make_gemini_request(prompt, model, temperature, top_p, max_tokens)
    except ChatServiceError:
        raise
    except Exception as e:
        logger.error(f"Server error: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise ChatServiceError(f"Server error: {str(e)}", 500)


@app.post("/api/gemini", response_model=GeminiResponse)
def gemini_proxy(req: GeminiRequest):
    """Forward a single prompt to Gemini and relay the reply."""
    content = _generate(req.prompt, req.model, req.temperature, req.top_p, req.max_tokens)
    logger.info(f"Received reply from Gemini with length: {len(content)}")
    return GeminiResponse(content=content)


@app.post("/api/chat", response_model=ChatResponse, response_model_exclude_none=True)
def chat(req: ChatRequest):
    """Answer a whole transcript through the proxy."""
    logger.info(f"Received chat request with {len(req.messages)} messages for model {req.model}")
    if not req.messages or not req.model:
        raise ValidationError("Missing messages or model.")

    prompt = build_prompt(req.messages, req.system_message)
    content = _generate(prompt, req.model, req.temperature, req.top_p, req.max_tokens)
    logger.debug(f"Assistant reply: {content}")

    return ChatResponse(content=content, structured=extract_structured(content), model=req.model)


# Page routes: one command per user action

def _state(ctl: ChatController) -> AppStateResponse:
    return AppStateResponse(
        sessions=ctl.store.list_sessions(),
        current_session_id=ctl.store.current_id,
        messages=ctl.store.view,
        settings=ctl.settings,
        error=ctl.store.error,
        is_loading=ctl.is_loading,
    )


def _find_message(ctl: ChatController, message_id: str) -> Message:
    for msg in ctl.store.view:
        if msg.id == message_id:
            return msg
    raise ChatServiceError(f"Message not found: {message_id}", 404)


@app.get("/ui/state", response_model=AppStateResponse)
async def get_state(ctl: ChatController = Depends(get_controller)):
    return _state(ctl)


@app.post("/ui/sessions", response_model=AppStateResponse)
async def new_session(ctl: ChatController = Depends(get_controller)):
    await ctl.dispatch(NewSession())
    return _state(ctl)


@app.post("/ui/sessions/{session_id}/switch", response_model=AppStateResponse)
async def switch_session(session_id: str, ctl: ChatController = Depends(get_controller)):
    await ctl.dispatch(SwitchSession(session_id))
    return _state(ctl)


@app.post("/ui/clear", response_model=AppStateResponse)
async def clear_chat(ctl: ChatController = Depends(get_controller)):
    await ctl.dispatch(ClearChat())
    return _state(ctl)


@app.post("/ui/messages", response_model=SubmitResponse)
async def submit_message(req: SubmitRequest, ctl: ChatController = Depends(get_controller)):
    messages = await ctl.dispatch(Submit(req.text))
    return SubmitResponse(messages=messages, error=ctl.store.error)


@app.get("/ui/messages/{message_id}", response_model=Message)
async def get_message(message_id: str, ctl: ChatController = Depends(get_controller)):
    return _find_message(ctl, message_id)


@app.get("/ui/messages/{message_id}/render", response_model=RenderedMessage)
async def render(message_id: str, fmt: str = Query("json", alias="format"), ctl: ChatController = Depends(get_controller)):
    rendered = render_message(_find_message(ctl, message_id))
    if fmt == "html":
        return HTMLResponse(to_html(rendered))
    return rendered


@app.put("/ui/settings", response_model=AppStateResponse)
async def update_settings(req: SettingsUpdate, ctl: ChatController = Depends(get_controller)):
    await ctl.dispatch(UpdateSettings(req))
    return _state(ctl)


@app.get("/ui/export")
async def export_chat(ctl: ChatController = Depends(get_controller)):
    result = await ctl.dispatch(ExportChat())
    return JSONResponse(
        result.document,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@app.post("/ui/import", response_model=AppStateResponse)
async def import_chat(request: Request, ctl: ChatController = Depends(get_controller)):
    raw = await request.body()
    await ctl.dispatch(ImportChat(raw))
    return _state(ctl)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
