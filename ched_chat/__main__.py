"""FastAPI entrypoint for the CHED institutions API and chat gateway."""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ched_chat.chat.failover import ModelFailover
from ched_chat.chat.fallback import latest_user_text
from ched_chat.chat.gateway import ChatGateway, InvalidConversation, message_metadata
from ched_chat.chat.guardrails import validate_screen_config
from ched_chat.config import settings
from ched_chat.ops.logging import log_event
from ched_chat.ops.metrics import (
    inc_chat_error,
    inc_chat_requests,
    metrics_content_type,
    observe_chat_latency,
    render_metrics,
)
from ched_chat.records.store import RecordStore
from ched_chat.schemas import ChatRequest, ChatResponse, Institution

_NOT_READY_DETAIL = "Institution data is still loading or failed to load. Please retry shortly."


@dataclass
class ChatState:
    started: float
    source: str = ""
    model: str | None = None
    fallback_reason: str | None = None


def startup_config_check() -> None:
    if settings.ENABLE_PROMPT_SCREEN:
        validate_screen_config()


def _default_gateway(store: RecordStore) -> ChatGateway:
    failover = ModelFailover.from_settings() if settings.GEMINI_API_KEY else None
    return ChatGateway(store=store, failover=failover, credential=settings.GEMINI_API_KEY)


def _resolve_request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or uuid.uuid4().hex


def _log_chat_start(request_id: str, message: str, turns: int) -> None:
    log_event(
        {
            "type": "chat_start",
            "request_id": request_id,
            "turns": turns,
            **message_metadata(message),
        }
    )


def _log_chat_end(request_id: str, message: str, state: ChatState) -> None:
    total = time.time() - state.started
    observe_chat_latency(total)
    log_event(
        {
            "type": "chat_end",
            "request_id": request_id,
            "total_sec": total,
            "source": state.source,
            "model": state.model,
            "fallback_reason": state.fallback_reason,
            **message_metadata(message),
        }
    )


async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    inc_chat_error("bad_request")
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    return JSONResponse(status_code=400, content={"error": detail})


def create_app(
    store: RecordStore | None = None,
    gateway: ChatGateway | None = None,
    records_path: str | None = None,
) -> FastAPI:
    """Build the API around an explicitly owned record store.

    When no store is passed, a fresh one is created and loaded in the
    background from ``records_path`` (default ``RECORDS_CSV``). A passed store
    is only loaded when ``records_path`` is given.
    """
    if store is None:
        store = RecordStore()
        records_path = records_path or settings.RECORDS_CSV

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup_config_check()
        app.state.gateway = gateway or _default_gateway(store)
        load_task = None
        if records_path:
            load_task = asyncio.create_task(store.load(records_path))
        app.state.load_task = load_task
        yield
        if load_task is not None and not load_task.done():
            load_task.cancel()

    app = FastAPI(title="CHED Institutions API", lifespan=lifespan)
    app.state.store = store
    app.state.gateway = gateway
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "CHED API is running. Go to /api/institutions to see data."

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "records_ready": store.is_ready(),
            "records": store.count(),
        }

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=render_metrics(), media_type=metrics_content_type())

    @app.get("/api/institutions", response_model=list[Institution])
    def institutions(search: str | None = Query(default=None)) -> list[Institution]:
        if not store.is_ready():
            raise HTTPException(status_code=503, detail=_NOT_READY_DETAIL)
        if search:
            return store.search(search, fields=("name",))
        return list(store.records())

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(req: ChatRequest, request: Request) -> ChatResponse:
        request_id = _resolve_request_id(request)
        state = ChatState(started=time.time())
        message = latest_user_text(req.chatHistory)
        inc_chat_requests()
        _log_chat_start(request_id, message, len(req.chatHistory))

        try:
            reply = request.app.state.gateway.reply(
                req.chatHistory, req.systemContext, request_id=request_id
            )
            state.source = reply.source
            state.model = reply.model
            state.fallback_reason = reply.fallback_reason
            return ChatResponse(text=reply.text)
        except InvalidConversation as exc:
            inc_chat_error("bad_request")
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            inc_chat_error(type(exc).__name__)
            log_event(
                {
                    "type": "chat_error",
                    "request_id": request_id,
                    "status_code": 500,
                    "error_type": type(exc).__name__,
                    **message_metadata(message),
                }
            )
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        finally:
            _log_chat_end(request_id, message, state)

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "ched_chat.__main__:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=False,
    )


if __name__ == "__main__":
    main()
