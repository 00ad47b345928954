"""
FastAPI + Socket.IO server.

Start with:
    python -m flowcanvas.server.main

Or via uvicorn directly:
    uvicorn flowcanvas.server.main:socket_app --port 3001 --reload

Set FLOWCANVAS_COMPLETION_BACKEND=echo to run without an OpenAI key.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowcanvas import __version__
from flowcanvas.server.completion import create_completion
from flowcanvas.server.routes.canvas_routes import router
from flowcanvas.server.settings import Settings
from flowcanvas.server.state import CanvasState
from flowcanvas.server.trace.socket_server import create_socket_app
from flowcanvas.server.trace.trace_emitter import global_tracer

# Load .env from the working directory so that OPENAI_API_KEY and the
# FLOWCANVAS_* settings are available without manual `export`.
load_dotenv()

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

def create_app(state: Optional[CanvasState] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API app around *state*, creating one from *settings* if absent."""
    settings = settings if settings is not None else Settings.from_env()
    if state is None:
        state = CanvasState(create_completion(settings), tracer=global_tracer,
                            seed_demo=settings.seed_demo)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutting down; cancelling outstanding completions")
        await state.aclose()

    app = FastAPI(title="FlowCanvas API", version=__version__, lifespan=lifespan)
    app.state.canvas_state = state
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_settings = Settings.from_env()
_configure_logging(_settings)

app = create_app(settings=_settings)

# socket_app is the top-level ASGI app passed to uvicorn.
# Socket.IO connections are handled at the root; all other requests are
# forwarded to the inner FastAPI app.
_origins = _settings.allowed_origins()
socket_app = create_socket_app(app, app.state.canvas_state, "*" if _origins == ["*"] else _origins)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    import uvicorn

    logger.info("Starting FlowCanvas on %s:%d", _settings.host, _settings.port)
    uvicorn.run(socket_app, host=_settings.host, port=_settings.port, log_level=_settings.log_level.lower())


if __name__ == "__main__":
    main()
