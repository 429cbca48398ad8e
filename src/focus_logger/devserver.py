"""Local ingestion server that speaks the wire protocol, for development only.

Nothing is stored: received logs are kept in memory and printed to the log.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from focus_logger import __version__
from focus_logger.buffer.state import to_base36
from focus_logger.sync.protocol import PROTOCOL_HEADER, ProtocolVersion

logger = logging.getLogger(__name__)


def create_app(require_auth: bool = False) -> FastAPI:
    """Build the dev server. Preflight requests get permissive CORS headers."""
    app = FastAPI(title="focus-logger dev ingestion server", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["OPTIONS", "POST", "GET"],
        allow_headers=["Content-Type", "Authorization", PROTOCOL_HEADER],
    )
    app.state.received = []
    app.state.health_pings = []

    def check_auth(authorization: str | None) -> None:
        if authorization:
            logger.info("Auth: %s", authorization[:16] + "...")
        else:
            logger.warning("No Authorization header")
            if require_auth:
                raise HTTPException(status_code=401, detail="Missing bearer token")

    @app.get("/api/status")
    async def status() -> dict[str, str]:
        logger.info("Connection check received")
        return {"status": "ok", "version": __version__}

    @app.post("/api/health")
    async def health(request: Request, authorization: str | None = Header(default=None)) -> dict[str, bool]:
        check_auth(authorization)
        payload = await request.json()
        logger.info("Health ping received: %s", payload)
        app.state.health_pings.append(payload)
        return {"received": True}

    @app.post("/api/log", status_code=201)
    async def receive_log(
        request: Request,
        authorization: str | None = Header(default=None),
        x_log_protocol: str = Header(default=str(int(ProtocolVersion.SINGLE))),
    ) -> dict[str, Any]:
        check_auth(authorization)
        try:
            version = ProtocolVersion(int(x_log_protocol))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown protocol {x_log_protocol!r}")

        body = await request.json()
        if version is ProtocolVersion.LEGACY_BULK:
            if not isinstance(body, list):
                raise HTTPException(status_code=400, detail="Protocol 1 expects an array")
            logs = body
        else:
            if not isinstance(body, dict):
                raise HTTPException(status_code=400, detail="Protocol 2 expects one object")
            logs = [body]

        logger.info("Received %d logs (protocol %d)", len(logs), version)
        for i, log in enumerate(logs, 1):
            source = log.get("source") or {}
            logger.info(
                "  %d. [%s] %s (%ss) client=%s",
                i,
                log.get("url", "No URL"),
                (log.get("title") or "Untitled")[:40],
                log.get("duration"),
                source.get("clientId", "-"),
            )
        app.state.received.extend(logs)

        return {
            "success": True,
            "logId": "test-log-id-" + to_base36(int(time.time() * 1000)),
            "pageId": "test-page-id",
            "projectId": "test-project-id",
        }

    return app
