"""
FastAPI application factory.

``create_app()`` is the single composition root: it opens the document
store, builds one REST handler and one RPC interface per configured
collection, and wires middleware, error handling and the health endpoint.

Layout of a running app (defaults)::

    GET  /health                      service status
    *    /api/<collection>[/<id>]     REST adapter, one per collection
    POST /rpc                         JSON-RPC 2.0, "<prefix><collection>:<op>"

Tags:
    docgate, api, app-factory, composition-root, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel, Field

from docgate import __version__
from docgate.api.deps import get_settings
from docgate.api.middleware.errors import unhandled_exception_handler
from docgate.api.middleware.request_id import RequestIDMiddleware
from docgate.codec import Codec
from docgate.core.logging import get_logger
from docgate.core.protocols import DocumentStore
from docgate.core.settings import GatewaySettings
from docgate.interface import ModelInterface, SimpleModelInterface
from docgate.rest.handler import RESTInterfaceHandler, RESTInterfaceOptions
from docgate.rpc import RPCInterface, RPCServer
from docgate.stores.sqlite import SQLiteDocumentStore

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "docgate"
    version: str = __version__
    collections: list[str] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup / shutdown hooks."""
    logger.info("docgate_starting", version=app.version, collections=list(app.state.rest_handlers))
    yield
    if app.state.owns_store:
        app.state.store.close()
    logger.info("docgate_stopped")


def rest_path(settings: GatewaySettings, collection: str) -> str:
    return f"{settings.api_prefix.rstrip('/')}/{collection}"


def create_app(
    *,
    settings: GatewaySettings | None = None,
    store: DocumentStore | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : GatewaySettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    store : DocumentStore | None
        Store to serve.  When ``None`` a SQLite store is opened at
        ``settings.database_path`` and closed on shutdown.
    """
    settings = settings or get_settings()
    owns_store = store is None
    if store is None:
        store = SQLiteDocumentStore(settings.database_path)

    app = FastAPI(title="docgate", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.owns_store = owns_store
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware & error handling ──────────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Protocol adapters ────────────────────────────────────────────
    codec = Codec(settings.default_format)
    rest_options = RESTInterfaceOptions(
        codec=codec,
        max_body_size=settings.max_body_size,
        parse_options=settings.rest_parse_options(),
        include_error_stack=settings.debug,
    )
    rpc_server = RPCServer(codec=codec, include_error_stack=settings.debug)

    rest_handlers: dict[str, RESTInterfaceHandler] = {}
    rpc_interfaces: dict[str, RPCInterface] = {}
    for name in settings.collections:
        simple = SimpleModelInterface(ModelInterface(store.collection(name)))
        path = rest_path(settings, name)
        handler = RESTInterfaceHandler(simple, path, rest_options)
        app.router.routes.extend(handler.routes(path))
        rest_handlers[name] = handler
        rpc_interfaces[name] = RPCInterface(simple, rpc_server, settings.rpc_method_prefix)

    app.router.routes.append(rpc_server.route(settings.rpc_path))
    app.state.rest_handlers = rest_handlers
    app.state.rpc_interfaces = rpc_interfaces
    app.state.rpc_server = rpc_server

    @app.get("/health", tags=["health"], response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(collections=list(settings.collections))

    return app


__all__ = ["create_app", "rest_path", "HealthResponse"]
