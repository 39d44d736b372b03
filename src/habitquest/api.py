from __future__ import annotations

"""Local HTTP API over `GameService` for browser or widget front ends."""

from datetime import date
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt

from .errors import EmptyTitle, GameError
from .service import GameService
from .telemetry import SCHEMA_VERSION, detect_version


class QuestCreateRequest(BaseModel):
    """Payload for `POST /v1/quests`."""

    title: str = Field(max_length=200)
    xp: StrictInt = 30
    emoji: str | None = Field(default=None, max_length=16)


class XpAwardRequest(BaseModel):
    amount: StrictInt


class SettingsRequest(BaseModel):
    """Partial settings update; omitted flags keep their current value."""

    muted: bool | None = None
    dark_mode: bool | None = None


def create_app(service: GameService) -> FastAPI:
    """Create API routes backed by one `GameService`.

    Handlers are declared `async` so they run one at a time on the event loop
    rather than in a worker thread pool.
    """

    app = FastAPI(title="HabitQuest API", version=detect_version())

    @app.middleware("http")
    async def trace_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
        incoming = (request.headers.get("x-habitquest-trace-id") or "").strip()
        trace_id = incoming[:120] if incoming else f"api:{uuid4()}"
        request.state.trace_id = trace_id
        response = await call_next(request)
        response.headers["X-Habitquest-Trace-Id"] = trace_id
        return response

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
        return JSONResponse(status_code=400, content=exc.to_dict())

    def request_trace_id(request: Request) -> str:
        value = getattr(request.state, "trace_id", None)
        if isinstance(value, str) and value:
            return value
        return f"api:{uuid4()}"

    @app.get("/v1/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": detect_version(), "schema_versions": {"telemetry": SCHEMA_VERSION}}

    @app.get("/v1/status")
    async def get_status() -> dict[str, Any]:
        return service.status()

    @app.get("/v1/quests")
    async def list_quests() -> list[dict[str, Any]]:
        return service.list_quests()

    @app.post("/v1/quests", status_code=201)
    async def add_quest(payload: QuestCreateRequest, request: Request) -> Any:
        quest = service.add_quest(payload.title, payload.xp, payload.emoji, trace_id=request_trace_id(request))
        if quest is None:
            return JSONResponse(status_code=400, content=EmptyTitle().to_dict())
        return quest

    @app.delete("/v1/quests/{quest_id}")
    async def delete_quest(quest_id: int, request: Request) -> dict[str, Any]:
        return {"deleted": service.delete_quest(quest_id, trace_id=request_trace_id(request))}

    @app.post("/v1/quests/{quest_id}/complete")
    async def complete_quest(quest_id: int, request: Request) -> dict[str, Any]:
        try:
            return service.complete_quest(quest_id, trace_id=request_trace_id(request))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Quest not found") from exc

    @app.post("/v1/xp")
    async def award_xp(payload: XpAwardRequest, request: Request) -> dict[str, Any]:
        return service.award_xp(payload.amount, trace_id=request_trace_id(request))

    @app.get("/v1/bonus")
    async def bonus_status(
        date: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    ) -> dict[str, Any]:
        try:
            return service.bonus_status(date_from_str(date) if date else None)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.post("/v1/bonus/claim")
    async def claim_bonus(
        request: Request,
        date: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    ) -> dict[str, Any]:
        try:
            target = date_from_str(date) if date else None
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return service.claim_bonus_if_owed(target, trace_id=request_trace_id(request))

    @app.get("/v1/settings")
    async def get_settings() -> dict[str, bool]:
        return service.get_settings()

    @app.put("/v1/settings")
    async def put_settings(payload: SettingsRequest, request: Request) -> dict[str, bool]:
        return service.update_settings(
            muted=payload.muted,
            dark_mode=payload.dark_mode,
            trace_id=request_trace_id(request),
        )

    @app.post("/v1/reset")
    async def reset(request: Request, confirm: bool = False) -> dict[str, Any]:
        if not confirm:
            raise HTTPException(status_code=400, detail="Reset requires confirm=true.")
        return service.reset(trace_id=request_trace_id(request))

    return app


def date_from_str(value: str) -> date:
    """Parse `YYYY-MM-DD` into a date object."""

    return date.fromisoformat(value)
