"""
Clicksand API: FastAPI server for browser attention tracking

This server provides:
- Activity ingestion (per-domain active / video seconds)
- Browser-open heartbeat
- Today / weekly / monthly stats
- Achievement rule settings and live notifications over WebSocket
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, field_validator

from . import __version__
from .accumulator import clamp_seconds
from .config import Settings
from .errors import ClicksandError
from .logs import asyncio_exception_handler, install_crash_handlers, recent_logs, setup_logging
from .rollover import date_string
from .service import TimeTrackingService, now_ms
from .store import SnapshotStore, migrate_rules

logger = logging.getLogger("clicksand.api")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# Pydantic Models
class UserRequest(BaseModel):
    userId: Optional[str] = None

    @field_validator("userId", mode="before")
    @classmethod
    def _coerce_user(cls, value):
        return _optional_text(value)


class LogRequest(UserRequest):
    domain: Optional[str] = None
    activeSeconds: float = 0
    videoSeconds: float = 0
    icon: Optional[str] = None

    @field_validator("domain", "icon", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return _optional_text(value)

    @field_validator("activeSeconds", "videoSeconds", mode="before")
    @classmethod
    def _coerce_seconds(cls, value):
        # Bad numbers are dropped to zero instead of failing the request
        return clamp_seconds(value, cap=float("inf"))


class LogResponse(BaseModel):
    success: bool
    accepted: bool
    achievement: Optional[dict] = None


class CategoryRequest(UserRequest):
    domain: str
    category: Optional[str] = None


class LogsResponse(BaseModel):
    logs: List[dict]
    count: int


def _empty_stats(settings: Settings, view: str) -> dict:
    return {
        "view": view,
        "currentDate": date_string(now_ms(), settings.timezone),
        "stats": {},
        "todayStats": {},
        "history": {},
        "categories": {},
    }


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    return user_id


def create_app(settings: Optional[Settings] = None, service: Optional[TimeTrackingService] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    service = service or TimeTrackingService(SnapshotStore(settings.db_path), settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        install_crash_handlers(settings.crash_log_path)
        asyncio.get_running_loop().set_exception_handler(asyncio_exception_handler)

        if isinstance(service.gateway, SnapshotStore):
            await service.gateway.init()
        service.start()
        logger.info("Clicksand API started")
        yield
        await service.close()
        logger.info("Clicksand API stopped")

    app = FastAPI(
        title="Clicksand API",
        description="Attention tracking and achievement service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Clicksand API",
            "version": __version__,
            "description": "Attention tracking and achievement service",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    @app.get("/api/logs/recent", response_model=LogsResponse)
    async def get_recent_logs(limit: int = 50):
        logs = recent_logs(limit)
        return {"logs": logs, "count": len(logs)}

    @app.post("/api/log", response_model=LogResponse)
    async def log_activity(request: LogRequest):
        """Apply one activity tick. Missing user or domain is acknowledged and ignored."""
        result = await service.ingest(
            request.userId or "",
            request.domain or "",
            request.activeSeconds,
            request.videoSeconds,
            request.icon,
        )
        achievement = result.notification.to_dict() if result.notification else None
        return {"success": True, "accepted": result.accepted, "achievement": achievement}

    @app.post("/api/heartbeat")
    async def heartbeat(request: UserRequest):
        await service.heartbeat(_require_user(request.userId))
        return {"success": True}

    @app.get("/api/stats")
    async def get_stats(userId: Optional[str] = None, view: str = "today"):
        user_id = _optional_text(userId)
        if not user_id:
            return _empty_stats(settings, view)
        try:
            return await service.query(user_id, view)
        except ClicksandError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/api/reset")
    async def reset_stats(request: UserRequest):
        await service.reset(_require_user(request.userId))
        return {"success": True}

    @app.get("/api/settings")
    async def get_settings(userId: str):
        rules = await service.get_achievement_rules(_require_user(_optional_text(userId)))
        return {"achievementRules": {pattern: rule.to_dict() for pattern, rule in rules.items()}}

    @app.post("/api/settings")
    async def update_settings(payload: dict):
        """Replace achievement rules. Accepts the canonical map or the flat site-list form."""
        user_id = _require_user(_optional_text(payload.get("userId")))
        rules = migrate_rules(payload)
        if rules is None:
            raise HTTPException(status_code=400, detail="No achievement rules in request")
        updated = await service.update_achievement_rules(user_id, rules)
        return {
            "success": True,
            "achievementRules": {pattern: rule.to_dict() for pattern, rule in updated.items()},
        }

    @app.get("/api/categories")
    async def get_categories(userId: str):
        overrides = await service.get_categories(_require_user(_optional_text(userId)))
        return {"categoryOverrides": overrides}

    @app.post("/api/categories")
    async def set_category(request: CategoryRequest):
        user_id = _require_user(request.userId)
        try:
            if request.category:
                category = await service.set_category(user_id, request.domain, request.category)
            else:
                category = await service.cycle_category(user_id, request.domain)
        except ClicksandError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "domain": request.domain, "category": category}

    @app.websocket("/ws/{user_id}")
    async def events_socket(websocket: WebSocket, user_id: str):
        """Push stats_update / achievement_unlocked events for one user."""
        with service.events.subscribe(user_id) as queue:
            await websocket.accept()

            async def forward():
                while True:
                    await websocket.send_json(await queue.get())

            sender = asyncio.create_task(forward())
            try:
                # Inbound frames are ignored; receiving only detects the disconnect
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug(f"WebSocket closed for {user_id}")
            finally:
                sender.cancel()
                (outcome,) = await asyncio.gather(sender, return_exceptions=True)
                if isinstance(outcome, Exception):
                    logger.warning(f"WebSocket push to {user_id} failed: {outcome}")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
