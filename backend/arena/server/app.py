from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from arena.logic.ai_delegate import AIDelegate
from arena.logic.exceptions import SessionCreationError
from arena.logic.generator import OpenAITextGenerator
from arena.logic.roster import RosterFactory
from arena.logic.tabulator import VoteTabulator
from arena.messaging.router import MessageRouter
from arena.server.settings import ArenaServerSettings
from arena.server.types import CalculateVotesRequest, CreateGameRequest
from arena.server.websocket import websocket_endpoint
from arena.session.registry import SessionRegistry
from shared.dal.message_log import PersistenceError
from shared.db import Database, SqliteMessageLog
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from arena.logic.generator import TextGenerator


_MAX_REQUEST_BODY_SIZE = 16 * 1024

ModelT = TypeVar("ModelT", bound=BaseModel)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def status(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    settings: ArenaServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "active_games": registry.session_count,
            "max_capacity": settings.max_capacity,
        },
    )


async def _parse_body(request: Request, model: type[ModelT]) -> ModelT | None:
    """Validate a small JSON body against ``model``; None when it is oversized or invalid."""
    body = await request.body()
    if len(body) > _MAX_REQUEST_BODY_SIZE:
        return None
    try:
        return model.model_validate_json(body)
    except ValidationError:
        return None


def _bad_body() -> JSONResponse:
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


async def create_game(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry

    game_request = await _parse_body(request, CreateGameRequest)
    if game_request is None:
        return _bad_body()

    try:
        session = await registry.create_session(game_request.player_name)
    except SessionCreationError as e:
        return JSONResponse({"error": str(e)}, status_code=503)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    snapshot = session.snapshot()
    return JSONResponse(
        {
            "game_id": session.game_id,
            "players": [p.model_dump(mode="json") for p in snapshot.players],
        },
        status_code=201,
    )


async def calculate_votes(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry

    votes_request = await _parse_body(request, CalculateVotesRequest)
    if votes_request is None:
        return _bad_body()

    counts = await registry.calculate_votes(votes_request.votes, votes_request.candidates)
    return JSONResponse(counts)


async def game_messages(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    game_id = request.path_params["game_id"]

    try:
        messages = await registry.read_messages(game_id)
    except PersistenceError:
        return JSONResponse({"error": "Game not found"}, status_code=404)
    if not messages and not registry.has_session(game_id):
        return JSONResponse({"error": "Game not found"}, status_code=404)
    return JSONResponse({"game_id": game_id, "messages": messages})


def build_registry(
    settings: ArenaServerSettings,
    database: Database,
    generator: TextGenerator | None = None,
) -> SessionRegistry:
    """Wire a SessionRegistry from settings and an open database."""
    if generator is None:  # pragma: no cover
        generator = OpenAITextGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    delegate = AIDelegate(generator)
    return SessionRegistry(
        message_log=SqliteMessageLog(database),
        delegate=delegate,
        tabulator=VoteTabulator(delegate),
        roster_factory=RosterFactory.from_files(settings.names_file, settings.identities_file),
        settings=settings.game_settings(),
        max_sessions=settings.max_capacity,
    )


def create_app(
    settings: ArenaServerSettings | None = None,
    registry: SessionRegistry | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ArenaServerSettings()

    # When the app creates its own registry, it owns the DB lifecycle.
    owned_db: Database | None = None

    if registry is None:  # pragma: no cover
        owned_db = Database(settings.database_path)
        owned_db.connect()
        registry = build_registry(settings, owned_db)

    if message_router is None:
        message_router = MessageRouter(registry)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/games", create_game, methods=["POST"]),
        Route("/games/{game_id}/messages", game_messages, methods=["GET"]),
        Route("/calculate-votes", calculate_votes, methods=["POST"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        await registry.shutdown()
        if owned_db is not None:
            owned_db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.registry = registry

    logger.info("arena server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = ArenaServerSettings()
    setup_logging(log_dir=Path(settings.log_dir) if settings.log_dir else None)
    return create_app(settings=settings)
