"""FastAPI application for the conversational memory service."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..services import MemoryCoordinator, create_memory_coordinator
from .config import AccessControlConfig, ConvoMemoryConfig
from .routes import router

# Global service state (set during lifespan)
_coordinator: Optional[MemoryCoordinator] = None
_instance_id: Optional[str] = None
_access_control: Optional[AccessControlConfig] = None
_default_max_results: int = 10

logger = logging.getLogger("convomemory.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global _coordinator, _instance_id, _access_control, _default_max_results

    config: ConvoMemoryConfig = app.state.config

    # Validate config
    errors = config.validate()
    if errors:
        raise ValueError(f"Configuration errors: {errors}")

    logger.info(f"Starting convomemory service (instance: {config.instance_id})")

    _instance_id = config.instance_id
    _access_control = config.access_control
    _default_max_results = config.memory.default_max_results
    _coordinator = create_memory_coordinator(
        db_provider=config.db.provider,
        db_path=config.db.path,
        db_uri=config.db.uri,
        delete_page_size=config.memory.delete_page_size,
    )

    # Create both collections up front so the first requests skip it
    await _coordinator.conversations.ensure_schema()
    await _coordinator.interactions.ensure_schema()

    access_mode = (
        f"per-user via {config.access_control.user_header}"
        if config.access_control.enabled else "disabled"
    )
    logger.info(
        f"Memory coordinator initialized (db: {config.db.provider}, "
        f"access control: {access_mode})"
    )

    yield

    logger.info("Shutting down convomemory service")
    _coordinator = None
    _instance_id = None
    _access_control = None


def create_app(config: Optional[ConvoMemoryConfig] = None) -> FastAPI:
    """Create FastAPI application.

    Args:
        config: Service configuration. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = ConvoMemoryConfig.from_env()

    app = FastAPI(
        title="Conversational Memory",
        description="Conversation and interaction storage for GenAI applications",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan access
    app.state.config = config

    # CORS middleware (localhost only). The server binds to 127.0.0.1 by
    # default so only local processes can reach it regardless of CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "service": "convomemory",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app


def run_server(
    config: Optional[ConvoMemoryConfig] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: str = "info",
):
    """Run the HTTP server.

    Args:
        config: Service configuration. If None, loads from environment.
        host: Override host from config.
        port: Override port from config.
        log_level: Logging level.
    """
    if config is None:
        config = ConvoMemoryConfig.from_env()

    # Ensure db directory exists
    if config.db.provider == "lancedb" and not config.db.uri:
        Path(config.db.path).parent.mkdir(parents=True, exist_ok=True)

    app = create_app(config)

    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=log_level,
    )
