"""
EDC Trustee Connector: FastAPI application entry point.

This module builds the FastAPI application of a connector node. The same
application runs on data sources, data sinks and data trustees: it
negotiates a commonly trusted trustee, correlates exchange notifications,
and moves asset bytes between connectors.

It configures logging and CORS, renders domain errors as
``{"error": "<message>"}`` and registers every router under the
configured API prefix (``/api`` by default).

Run it with ``edc-trustee`` or:
    uvicorn app.main:app --port 9191
"""

import logging
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings
from app.core.errors import TrusteeError
from app.dependencies import build_node
from app.routes import assets_routes, context_routes, services_routes, transfers_routes, trusted_participants_routes

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Creates the application of one connector node.

    Args:
        settings (Optional[Settings]): Node settings; read from the
            environment when omitted.
        http_client (Optional[httpx.AsyncClient]): Client for outbound calls,
            mainly to inject a mock transport in tests.

    Returns:
        FastAPI: The configured application, with its `NodeContext` on
        `app.state.node`.
    """

    settings = settings or Settings.from_env()
    configure_logging(settings)

    # ------------------------------------------------------------------------------
    # Application initialization
    # ------------------------------------------------------------------------------

    app = FastAPI(
        title="EDC Trustee Connector",
        description="Trust negotiation, exchange coordination and data transfers between EDC connectors",
        version="0.4.0"
    )
    app.state.node = build_node(settings, http_client)

    # ------------------------------------------------------------------------------
    # Middleware configuration
    # ------------------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------------------

    @app.exception_handler(TrusteeError)
    async def trustee_error_handler(request: Request, exc: TrusteeError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    # ------------------------------------------------------------------------------
    # Application lifecycle events
    # ------------------------------------------------------------------------------

    @app.on_event("startup")
    async def announce_node():
        node = app.state.node
        node.monitor.info(
            f"Connector {settings.node_name} started with {len(node.whitelist.list())} trusted participants"
        )

    @app.on_event("shutdown")
    async def close_node():
        """Waits for background notifications and closes the HTTP client."""
        await app.state.node.close()

    # ------------------------------------------------------------------------------
    # API routes registration
    # ------------------------------------------------------------------------------

    prefix = settings.api_prefix
    app.include_router(trusted_participants_routes.router, prefix=settings.negotiation_suffix,
                       tags=["Trusted participants"])
    app.include_router(transfers_routes.router, prefix=f"{prefix}/transfers", tags=["Transfers"])
    app.include_router(assets_routes.router, prefix=f"{prefix}/assets", tags=["Assets"])
    app.include_router(services_routes.router, prefix=f"{prefix}/services", tags=["Services"])
    app.include_router(context_routes.router, prefix=f"{prefix}/context", tags=["Exchange context"])

    return app


app = create_app()


def run() -> None:
    """Serves the application with uvicorn on the configured API port."""
    uvicorn.run(app, host="0.0.0.0", port=app.state.node.settings.api_port)
