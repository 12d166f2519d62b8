"""
FastAPI server exposing one workbench session over HTTP.

This server provides:
- Tool schemas for function-calling LLM clients (GET /tools)
- Tool execution (POST /tools/{name}), returning the ToolResult as JSON
- The workspace tree (GET/PUT /workspace)
- Runtime status (GET /runtime)

One WorkbenchSession is built with the app. Its runtime is only booted on
the first execution or package call, and shut down with the app.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from pyworkbench.config import WorkbenchConfig
from pyworkbench.errors import WorkbenchError
from pyworkbench.session import WorkbenchSession
from pyworkbench.tools import ToolCategory
from pyworkbench.tree import tree_from_dicts

logger = logging.getLogger(__name__)


def create_app(session_factory: Callable[[], WorkbenchSession] | None = None) -> FastAPI:
    """Build the app around a fresh session (or one from session_factory)."""
    session = session_factory() if session_factory else WorkbenchSession(config=WorkbenchConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.session.close()

    app = FastAPI(title="pyworkbench API", version="0.1.0", lifespan=lifespan)
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_session(request: Request) -> WorkbenchSession:
        return request.app.state.session

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(UTC).isoformat()}

    @app.get("/tools")
    async def list_tools(request: Request, category: str | None = None) -> dict[str, Any]:
        """Tool schemas, optionally for one category."""
        registry = get_session(request).registry
        if category is None:
            return {"tools": registry.get_all_tool_schemas()}
        try:
            tools = registry.get_tools_by_category(ToolCategory(category))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown tool category: {category}")
        return {"tools": [tool.to_schema() for tool in tools]}

    @app.get("/tools/categories")
    async def list_categories(request: Request) -> dict[str, list[str]]:
        return get_session(request).registry.get_available_categories()

    @app.get("/tools/stats")
    async def tool_stats(request: Request) -> dict[str, Any]:
        return get_session(request).registry.get_stats()

    @app.post("/tools/{name}")
    async def call_tool(
        name: str,
        request: Request,
        arguments: dict[str, Any] | None = Body(default=None),
    ) -> dict[str, Any]:
        """Execute a tool. Failures are reported in the body, not as HTTP errors."""
        result = await get_session(request).execute(name, arguments or {})
        return result.to_dict()

    @app.get("/workspace")
    async def get_workspace(request: Request) -> dict[str, Any]:
        return {"tree": get_session(request).tree_as_dicts()}

    @app.put("/workspace")
    async def put_workspace(request: Request, payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Replace the whole workspace tree."""
        items = payload.get("tree")
        if not isinstance(items, list):
            raise HTTPException(status_code=400, detail="Body must be {\"tree\": [...]}")
        session = get_session(request)
        try:
            session.set_tree(tree_from_dicts(items))
        except WorkbenchError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info(f"Workspace replaced ({len(items)} top-level items)")
        return {"tree": session.tree_as_dicts()}

    @app.get("/runtime")
    async def runtime_status(request: Request) -> dict[str, Any]:
        return get_session(request).runtime_status()

    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the API server."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
