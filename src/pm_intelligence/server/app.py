"""FastAPI app factory.

Endpoints are intentionally thin wrappers over :class:`PMToolbox`; tool calls
return the same envelope the CLI prints.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException

from pm_intelligence import __version__
from pm_intelligence.config import PMSettings
from pm_intelligence.tools import PMToolbox

logger = logging.getLogger(__name__)


def create_app(toolbox: PMToolbox | None = None) -> FastAPI:
    if toolbox is None:
        toolbox = PMToolbox.from_settings(PMSettings())

    app = FastAPI(
        title="pm-intelligence",
        version=__version__,
        description="Tool-call API over the local PM state, cache and batch operations.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose the toolbox for request handlers that want to read it.
    app.state.toolbox = toolbox

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "github": toolbox.github is not None,
            "syncStale": toolbox.sync_stale(),
        }

    @app.get("/api/tools")
    def list_tools() -> list[dict[str, str]]:
        return toolbox.describe()

    @app.post("/api/tools/{name}")
    def call_tool(name: str, params: dict[str, Any] | None = Body(default=None)) -> dict[str, Any]:
        if not toolbox.has_tool(name):
            raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
        return toolbox.call(name, **(params or {}))

    @app.get("/api/cache/stats")
    def cache_stats() -> dict[str, object]:
        return toolbox.cache_stats()

    @app.get("/api/metrics")
    def metrics() -> dict[str, dict[str, object]]:
        return toolbox.tool_metrics()

    return app
