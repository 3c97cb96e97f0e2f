"""
NodeFlow HTTP application.

Serves the flow engine over REST and WebSocket: node type discovery, flow
validation, synchronous and streamed runs, and the store of finished runs.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from nodeflow.config import settings
from nodeflow.api.routes import flows, node_types, runs, websocket
from nodeflow.engine.node_types import NODE_DEFINITIONS
from nodeflow.storage.memory import run_storage


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


DESCRIPTION = """
Runs flows exported from the visual node editor.

A flow is a list of nodes (Button, Variable, If, Switch, Delay, Random,
Merge, Logger, Output, AI) and the edges wiring their sockets. Starting at
one node, every node whose input fired runs once, and each decision is
recorded in the run log.

Typical use: inspect `GET /node-types`, check a flow with
`POST /flows/validate`, then run it with `POST /flows/run` or stream it over
`WS /ws/run`. Finished runs stay available under `/runs`.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} ready")
    logger.info(f"Executors registered for: {', '.join(flows.registry)}")
    yield
    logger.info(f"{settings.APP_NAME} stopped with {len(run_storage)} stored runs")


def create_app() -> FastAPI:
    """Build the FastAPI application with all routers attached."""
    application = FastAPI(
        title=settings.APP_NAME,
        description=DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # The editor is served from a different origin
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (flows, runs, node_types, websocket):
        application.include_router(module.router)

    @application.get("/", tags=["Root"])
    async def root():
        """Service name, version and entry points."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "description": "Execution engine for visual node flows",
            "docs": "/docs",
            "endpoints": {
                "flows": "/flows",
                "runs": "/runs",
                "node_types": "/node-types",
                "websocket_run": "/ws/run",
            },
        }

    @application.get("/health", tags=["Root"])
    async def health():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "runs_count": len(run_storage),
            "node_types_count": len(NODE_DEFINITIONS),
        }

    @application.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            },
        )

    return application


app = create_app()
