"""
FastAPI application for the stream-status service.

- Health: /health/live, /health/ready
- API: /api/srs-callback, /api/stream-status/{key}, /api/monitor, /api/connections
- Status socket: ws://WS_HOST:WS_PORT/ws (websockets server, same event loop)
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.health import router as health_router
from app.api.router import router as api_router
from app.api.socket_server import serve_status_socket
from app.services.hub import StatusHub


def _setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _setup_logging()

    hub = StatusHub.from_settings(settings)
    app.state.hub = hub
    await hub.start()
    socket_server = await serve_status_socket(
        hub, settings.WS_HOST, settings.WS_PORT, settings.WS_PATH
    )

    yield

    socket_server.close()
    await socket_server.wait_closed()
    await hub.stop()


app = FastAPI(
    title="Restream status API",
    description="Stream liveness from SRS, pushed to browsers over WebSocket",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(api_router, prefix=settings.API_PREFIX)


def run() -> None:
    uvicorn.run("app.api.main:app", host=settings.HOST, port=settings.PORT)
