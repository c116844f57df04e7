"""FastAPI entrypoint exposing the diagnostic query endpoint."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException

from mysql_agent.agent.service import AgentContext, DiagnosticService
from mysql_agent.config import AgentConfig, load_settings
from mysql_agent.errors import AgentInitializationError
from mysql_agent.schemas import QueryRequest, QueryResponse

logger = logging.getLogger(__name__)


def create_app(
    context: AgentContext | None = None,
    config: AgentConfig | None = None,
) -> FastAPI:
    """Build the app around an injected context.

    Without a context, settings are loaded from `MYSQL_AGENT_CONFIG` and the
    environment; the registry and model client are built on first use.
    """

    if context is None:
        settings = load_settings()
        context = AgentContext.from_settings(settings)
        config = config or settings.agent
    service = DiagnosticService(context, config)

    app = FastAPI(title="MySQL Diagnostic Agent", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, Any]:
        try:
            resources = context.resources()
        except AgentInitializationError as exc:
            return {"status": "error", "detail": str(exc)}
        return {
            "status": "ok",
            "llm_configured": resources.client.configured,
            "tools": resources.registry.names(),
        }

    @app.get("/tools")
    def tools() -> dict[str, Any]:
        try:
            resources = context.resources()
        except AgentInitializationError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"items": [asdict(definition) for definition in resources.registry.definitions()]}

    @app.post("/query", response_model=QueryResponse)
    def query(request: QueryRequest) -> QueryResponse:
        try:
            return service.query(request)
        except AgentInitializationError as exc:
            logger.error("query rejected: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc

    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.server.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    app = create_app(AgentContext.from_settings(settings), settings.agent)
    logger.info("listening on %s:%d", settings.server.host, settings.server.port)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
