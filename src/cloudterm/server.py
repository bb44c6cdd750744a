"""FastAPI server exposing the terminal bridge.

    WS   /?instanceId=<id>   -> bridged SSH shell (JSON messages)
    GET  /health             -> {"status": "ok", "active_sessions": n}
    GET  /ip/{instance_id}   -> {"publicIp": ..., "state": ...}
    GET  /sessions           -> live session snapshot
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Query, WebSocket
from pydantic import BaseModel, Field

from cloudterm.bridge.bridge import SessionBridge, ShellFactory
from cloudterm.bridge.client import WebSocketClient
from cloudterm.config.settings import Settings
from cloudterm.domain.models import SessionInfo
from cloudterm.registry import SessionRegistry
from cloudterm.resolver import build_resolver
from cloudterm.resolver.base import (
    AddressResolver,
    AddressUnavailableError,
    InstanceNotFoundError,
    InstanceNotRunningError,
    ResolverError,
)

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"
    active_sessions: int = 0


class InstanceIPResponse(BaseModel):
    public_ip: str = Field(serialization_alias="publicIp")
    state: str


def _status_for(error: ResolverError) -> int:
    if isinstance(error, InstanceNotFoundError):
        return 404
    if isinstance(error, InstanceNotRunningError):
        return 409
    if isinstance(error, AddressUnavailableError):
        return 503
    return 502


def create_app(
    settings: Settings | None = None,
    resolver: AddressResolver | None = None,
    shell_factory: ShellFactory | None = None,
    registry: SessionRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings. Defaults to ``Settings()``.
        resolver: Optional pre-configured resolver (for testing).
        shell_factory: Optional shell constructor (for testing).
        registry: Optional pre-configured session registry.
    """
    settings = settings or Settings()
    resolver = resolver or build_resolver(settings.resolver)
    registry = registry if registry is not None else SessionRegistry()
    bridge = SessionBridge(
        resolver=resolver,
        credentials=settings.ssh.credentials(),
        registry=registry,
        shell_factory=shell_factory,
        terminal=settings.terminal,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Bridge ready on %s", settings.server.websocket_path)
        yield
        await app.state.registry.close_all()
        await app.state.resolver.aclose()
        logger.info("Bridge stopped")

    app = FastAPI(
        title="cloudterm",
        description="WebSocket terminal bridge to remote instances over SSH",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.resolver = resolver
    app.state.registry = registry
    app.state.bridge = bridge

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", active_sessions=len(app.state.registry))

    @app.get("/ip/{instance_id}")
    async def instance_ip(instance_id: str) -> InstanceIPResponse:
        try:
            target = await app.state.resolver.resolve(instance_id)
        except ResolverError as e:
            raise HTTPException(status_code=_status_for(e), detail=str(e)) from e
        return InstanceIPResponse(public_ip=target.address, state=target.state)

    @app.get("/sessions")
    async def list_sessions() -> list[SessionInfo]:
        return app.state.registry.snapshot()

    @app.websocket(settings.server.websocket_path)
    async def terminal(
        websocket: WebSocket,
        instance_id: str | None = Query(default=None, alias="instanceId"),
    ) -> None:
        await websocket.accept()
        await app.state.bridge.serve(WebSocketClient(websocket), instance_id)

    return app
