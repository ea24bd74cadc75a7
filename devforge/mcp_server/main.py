"""DevForge MCP server - HTTP server for platform engineering tools.

Implements MCP-style tools backed by the platform database:
- get_service_info
- list_services
- get_service_dependencies
- get_service_metrics
- get_incidents
- analyze_platform_health
- execute_workflow
- get_workflow_status

and read-only resources for the service catalog, dashboard metrics and
active workflows.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from devforge.analytics.health import CategoryScorer
from devforge.db.session import SessionFactory, get_session
from devforge.mcp_server.errors import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    RESOURCE_NOT_FOUND,
    TOOL_NOT_FOUND,
    MCPError,
)
from devforge.mcp_server.tools.analytics import (
    analyze_platform_health_tool,
    dashboard_metrics_resource,
    get_incidents_tool,
    get_service_metrics_tool,
)
from devforge.mcp_server.tools.services import (
    get_service_dependencies_tool,
    get_service_info_tool,
    list_services_tool,
    service_catalog_resource,
)
from devforge.mcp_server.tools.workflows import (
    active_workflows_resource,
    execute_workflow_tool,
    get_workflow_status_tool,
)
from devforge.workflows.runner import WorkflowRunner

SERVER_NAME = "devforge-mcp-server"
SERVER_VERSION = "1.0.0"

TOOL_DESCRIPTIONS: dict[str, str] = {
    "get_service_info": "Get detailed information about a specific service",
    "list_services": "List all services with optional filtering",
    "get_service_dependencies": "Get dependency graph for a service",
    "get_service_metrics": "Get performance metrics for a service",
    "get_incidents": "Get current and recent incidents",
    "analyze_platform_health": "Analyze overall platform health and provide recommendations",
    "execute_workflow": "Execute a predefined workflow or action",
    "get_workflow_status": "Get the status and logs of a workflow execution",
}

RESOURCE_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "devforge://services/catalog": ("Service Catalog", "Complete service catalog with dependencies and metadata"),
    "devforge://metrics/dashboard": ("Platform Metrics", "Platform metrics and health data"),
    "devforge://workflows/active": ("Active Workflows", "Currently running and recent workflow executions"),
}


@dataclass
class ToolRegistry:
    tools: dict[str, Callable[[dict], dict]]
    resources: dict[str, Callable[[], dict]]


def build_registry(
    session_factory: SessionFactory = get_session,
    runner: WorkflowRunner | None = None,
    scorers: Mapping[str, CategoryScorer] | None = None,
) -> ToolRegistry:
    """Bind every tool and resource to its collaborators."""
    return ToolRegistry(
        tools={
            "get_service_info": partial(get_service_info_tool, session_factory=session_factory),
            "list_services": partial(list_services_tool, session_factory=session_factory),
            "get_service_dependencies": partial(get_service_dependencies_tool, session_factory=session_factory),
            "get_service_metrics": partial(get_service_metrics_tool, session_factory=session_factory),
            "get_incidents": partial(get_incidents_tool, session_factory=session_factory),
            "analyze_platform_health": partial(
                analyze_platform_health_tool, session_factory=session_factory, scorers=scorers
            ),
            "execute_workflow": partial(execute_workflow_tool, session_factory=session_factory, runner=runner),
            "get_workflow_status": partial(get_workflow_status_tool, session_factory=session_factory),
        },
        resources={
            "devforge://services/catalog": partial(service_catalog_resource, session_factory=session_factory),
            "devforge://metrics/dashboard": partial(dashboard_metrics_resource, session_factory=session_factory),
            "devforge://workflows/active": partial(active_workflows_resource, session_factory=session_factory),
        },
    )


def create_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create MCP-compliant error response."""
    return JSONResponse(
        status_code=200,  # MCP uses 200 with error payload
        content={
            "error": {
                "code": error_code,
                "message": error_message,
            },
        },
    )


async def _read_body(request: Request) -> dict[str, Any]:
    body = await request.json()
    if not isinstance(body, dict):
        raise MCPError(INVALID_REQUEST, "Request body must be a JSON object")
    return body


def create_app(registry: ToolRegistry | None = None) -> FastAPI:
    registry = registry or build_registry()
    app = FastAPI(title="DevForge MCP Server", version=SERVER_VERSION)

    @app.get("/mcp/tools/list")
    async def list_tools() -> dict:
        return {
            "tools": [
                {"name": name, "description": TOOL_DESCRIPTIONS.get(name, "")}
                for name in registry.tools
            ]
        }

    @app.post("/mcp/tools/call")
    async def call_tool(request: Request) -> JSONResponse:
        """Handle MCP tool call requests.

        Expected request body:
        {
            "tool": "tool_name",
            "arguments": {...}
        }

        Returns MCP-compliant response with result or error.
        """
        try:
            body = await _read_body(request)
            tool_name = body.get("tool")
            arguments = body.get("arguments") or {}

            if not tool_name:
                return create_error_response(INVALID_REQUEST, "Missing 'tool' field")

            if tool_name not in registry.tools:
                return create_error_response(
                    TOOL_NOT_FOUND,
                    f"Tool '{tool_name}' not found. Available tools: {list(registry.tools.keys())}",
                )

            tool_func = registry.tools[tool_name]

            # Tools are sync and may block on the database or simulated delays
            try:
                result = await asyncio.to_thread(tool_func, arguments)
                return JSONResponse(status_code=200, content={"result": result})
            except MCPError as e:
                return create_error_response(e.code, e.message)
            except Exception as e:
                logger.exception(f"Tool execution error in {tool_name}")
                return create_error_response(INTERNAL_ERROR, f"Error executing tool {tool_name}: {e!s}")

        except json.JSONDecodeError:
            return create_error_response(INVALID_REQUEST, "Invalid JSON in request body")
        except MCPError as e:
            return create_error_response(e.code, e.message)

    @app.get("/mcp/resources/list")
    async def list_resources() -> dict:
        return {
            "resources": [
                {"uri": uri, "name": name, "description": description, "mimeType": "application/json"}
                for uri, (name, description) in RESOURCE_DESCRIPTIONS.items()
                if uri in registry.resources
            ]
        }

    @app.post("/mcp/resources/read")
    async def read_resource(request: Request) -> JSONResponse:
        try:
            body = await _read_body(request)
            uri = body.get("uri")

            if not uri:
                return create_error_response(INVALID_REQUEST, "Missing 'uri' field")

            if uri not in registry.resources:
                return create_error_response(RESOURCE_NOT_FOUND, f"Unknown resource: {uri}")

            try:
                result = await asyncio.to_thread(registry.resources[uri])
                return JSONResponse(status_code=200, content={"result": result})
            except Exception as e:
                logger.exception(f"Resource access error for {uri}")
                return create_error_response(INTERNAL_ERROR, f"Error accessing resource {uri}: {e!s}")

        except json.JSONDecodeError:
            return create_error_response(INVALID_REQUEST, "Invalid JSON in request body")
        except MCPError as e:
            return create_error_response(e.code, e.message)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "server": SERVER_NAME}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from devforge.config.settings import settings
    from devforge.core.logger import setup_logger

    setup_logger(level=settings.log_level, log_file=settings.log_file or None)
    uvicorn.run(app, host=settings.mcp_host, port=settings.mcp_port)
