"""HTTP 接口层（FastAPI）。

路由同时挂载在 /api 与根路径下：
- POST /conversations
- GET  /conversations/{conversation_id}/messages
- POST /chat（按客户端 IP 限流）
"""

from typing import List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter

from support_chat.agents.support_agent import SupportAgent
from support_chat.api.rate_limit import configure_rate_limiting
from support_chat.api.schemas import ChatIn, ChatOut, ConversationOut, MessageOut
from support_chat.api.service import build_agent
from support_chat.config.settings import settings
from support_chat.domain.exceptions import BusinessError
from support_chat.infrastructure.logging.logger import logger


def _agent(request: Request) -> SupportAgent:
    return request.app.state.agent


def _build_router(limiter: Limiter, chat_limit: str) -> APIRouter:
    router = APIRouter()

    @router.post("/conversations", response_model=ConversationOut)
    def create_conversation(request: Request) -> ConversationOut:
        conv = _agent(request).create_conversation()
        return ConversationOut.from_record(conv)

    @router.get("/conversations/{conversation_id}/messages", response_model=List[MessageOut])
    def get_messages(request: Request, conversation_id: int) -> List[MessageOut]:
        return [MessageOut.from_record(m) for m in _agent(request).get_messages(conversation_id)]

    @router.post("/chat", response_model=ChatOut)
    @limiter.limit(chat_limit)
    def chat(request: Request, body: ChatIn) -> ChatOut:
        turn = _agent(request).process_message(body.conversation_id, body.text)
        return ChatOut(
            user_message=MessageOut.from_record(turn.user_message),
            ai_message=MessageOut.from_record(turn.ai_message),
            conversation_id=turn.conversation_id,
        )

    return router


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return JSONResponse(
        status_code=400,
        content={"error": "VALIDATION_ERROR", "message": "Invalid request", "details": details},
    )


async def _business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            f"Request failed: {exc.message}",
            extra={"extra": {"path": request.url.path, "code": exc.code, **exc.extra}},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": exc.code, "message": "Internal Server Error"},
        )
    content = {"error": exc.code, "message": exc.message}
    if exc.code == "VALIDATION_ERROR":
        content["details"] = [{"field": exc.extra.get("field", ""), "message": exc.message}]
    return JSONResponse(status_code=exc.http_status, content=content)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error: {exc}", extra={"extra": {"path": request.url.path}})
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "Internal Server Error"},
    )


def create_app(agent: Optional[SupportAgent] = None, cfg=None) -> FastAPI:
    """创建 FastAPI 应用；agent 为空时按配置组装默认实现。"""
    cfg = cfg if cfg is not None else settings
    app = FastAPI(title="Support Chat", version="1.0.0")
    app.state.agent = agent if agent is not None else build_agent(cfg)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    limiter = configure_rate_limiting(app)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(BusinessError, _business_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    router = _build_router(limiter, cfg.chat_rate_limit)
    app.include_router(router, prefix="/api")
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
