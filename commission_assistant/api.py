"""FastAPI application exposing the chatbot and the PV text export."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import Chatbot
from .config import get_config
from .documents import pv_text_filename, render_pv_text
from .errors import ChatbotError, NotFound, Unauthenticated
from .models import ChatRequest
from .resolver import is_numeric_id
from .storage import PV, Meeting, User
from .storage.database import create_all_tables, dispose_engine, get_session

logger = logging.getLogger("commission-assistant.api")

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: ensure DB schema. Shutdown: dispose engine."""
    await create_all_tables()
    yield
    await dispose_engine()


async def get_current_user(
    session: SessionDep,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> User:
    """Acting user from the X-User-Id header set by the auth proxy."""
    if not x_user_id or not is_numeric_id(x_user_id.strip()):
        raise Unauthenticated("Unauthenticated.")
    user = await session.get(User, int(x_user_id.strip()))
    if user is None:
        logger.warning(f"Request for unknown user id {x_user_id}")
        raise Unauthenticated("Unauthenticated.")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_chatbot(request: Request) -> Chatbot:
    return request.app.state.chatbot


async def chatbot_error_handler(request: Request, exc: ChatbotError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"reply": exc.public_message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Invalid request to {request.url.path}: {len(exc.errors())} errors")
    return JSONResponse(
        status_code=422,
        content={"reply": "Invalid message provided.", "errors": jsonable_encoder(exc.errors())},
    )


async def chat(
    body: ChatRequest,
    session: SessionDep,
    user: CurrentUser,
    chatbot: Annotated[Chatbot, Depends(get_chatbot)],
) -> JSONResponse:
    logger.info(f"Chatbot request from user {user.id} ({len(body.history)} history turns)")
    result = await chatbot.process(session, user, body.message, body.history)
    return JSONResponse(status_code=result.status_code, content=result.body())


async def pv_text(pv_id: int, session: SessionDep) -> PlainTextResponse:
    row = (
        await session.execute(
            select(PV, Meeting.title).outerjoin(Meeting, PV.meeting_id == Meeting.id).where(PV.id == pv_id)
        )
    ).first()
    if row is None:
        raise NotFound(f"I couldn't find a PV with ID {pv_id}.")
    pv, title = row

    logger.info(f"Serving text export for PV {pv_id}")
    return PlainTextResponse(
        render_pv_text(title or "Unknown Meeting", pv.content),
        headers={"Content-Disposition": f'attachment; filename="{pv_text_filename(pv_id)}"'},
    )


def create_app(chatbot: Optional[Chatbot] = None) -> FastAPI:
    app = FastAPI(
        title="Commission Assistant",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.chatbot = chatbot or Chatbot()

    app.add_exception_handler(ChatbotError, chatbot_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_api_route("/api/chatbot", chat, methods=["POST"], tags=["chatbot"])
    app.add_api_route("/api/pvs/{pv_id}/text", pv_text, methods=["GET"], tags=["pvs"])
    return app


def main() -> None:
    """Run the API server."""
    import uvicorn

    cfg = get_config()
    logging.basicConfig(
        level=cfg["log_level"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(create_app(), host=cfg["host"], port=cfg["port"])


if __name__ == "__main__":
    main()
