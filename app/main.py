"""Entry point for the FastAPI-powered Alexa skill endpoint."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from pydantic import ValidationError

from .config import settings
from .services.identity import IdentityCache
from .services.playback import PlaybackService
from .services.plex import PlexClient
from .skill import SkillHandler, SkillRequest

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    plex_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=settings.pms_base_url,
            timeout=httpx.Timeout(settings.plex_timeout_seconds, connect=5.0),
        )
    )

    plex = PlexClient(settings, plex_http_client)
    identity = IdentityCache(settings, plex)
    playback = PlaybackService(settings, plex, identity)
    fastapi_app.state.skill_handler = SkillHandler(settings, plex, playback)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Voice control for Plex: pick an episode and start it on a player",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_routes(fastapi_app)
    return fastapi_app


def get_skill_handler(app: FastAPI) -> SkillHandler:
    handler = getattr(app.state, "skill_handler", None)
    if not isinstance(handler, SkillHandler):
        raise RuntimeError("Skill handler not initialised")
    return handler


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/alexa")
    async def alexa_endpoint(request: Request) -> dict[str, Any]:
        handler = get_skill_handler(fastapi_app)
        try:
            payload = await request.json()
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        try:
            skill_request = SkillRequest.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc

        response = await handler.handle(skill_request)
        return response.to_payload()


app = create_app()
