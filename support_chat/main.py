import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

import support_chat.config.config as configs
from support_chat.api.v1.route import api_router as MainRouter
from support_chat.api.v1.ws import ws_router
from support_chat.client.db.message_store import MessageStore
from support_chat.db import models  # noqa: F401
from support_chat.db.session import Base, SessionLocal, engine
from support_chat.errors import ChatError
from support_chat.service.chat.hub import ChatHub

logging.basicConfig(
    level=configs.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="support_chat", version="0.1.0")
app.include_router(router=MainRouter, prefix="/api/v1")
app.include_router(router=ws_router)


@app.exception_handler(ChatError)
async def chat_error_handler(_: Request, exc: ChatError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "message": exc.message})


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=engine)
    app.state.chat_hub = ChatHub(MessageStore(SessionLocal))


@app.on_event("shutdown")
def shutdown() -> None:
    hub = getattr(app.state, "chat_hub", None)
    if hub is not None:
        hub.shutdown()
