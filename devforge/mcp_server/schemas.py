"""Validated input models for each tool.

Arguments arrive as camelCase JSON; fields are snake_case with aliases.
Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devforge.db.models import IncidentSeverity, IncidentStatus, ServiceStatus
from devforge.mcp_server.errors import INVALID_INPUT, MCPError

ModelT = TypeVar("ModelT", bound="ToolInput")


class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GetServiceInfoInput(ToolInput):
    service_name: str = Field(alias="serviceName", min_length=1)


class ListServicesInput(ToolInput):
    team: str | None = None
    type: str | None = None
    status: ServiceStatus | None = None
    language: str | None = None
    limit: int = Field(default=50, gt=0)


class GetServiceDependenciesInput(ToolInput):
    service_name: str = Field(alias="serviceName", min_length=1)
    depth: int = Field(default=2, ge=0)


class GetServiceMetricsInput(ToolInput):
    service_name: str = Field(alias="serviceName", min_length=1)
    time_range: str = Field(default="24h", alias="timeRange")
    metrics: list[str] = Field(default_factory=list)


class GetIncidentsInput(ToolInput):
    status: IncidentStatus | None = None
    severity: IncidentSeverity | None = None
    service_name: str | None = Field(default=None, alias="serviceName")
    limit: int = Field(default=20, gt=0)


class AnalyzePlatformHealthInput(ToolInput):
    include_recommendations: bool = Field(default=True, alias="includeRecommendations")
    focus_areas: list[str] = Field(default_factory=list, alias="focusAreas")


class ExecuteWorkflowInput(ToolInput):
    workflow_name: str = Field(alias="workflowName", min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)
    environment: str = "DEVELOPMENT"
    user_id: str = Field(default="system", alias="userId")


class GetWorkflowStatusInput(ToolInput):
    execution_id: str = Field(alias="executionId", min_length=1)


def _describe(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(loc) for loc in issue["loc"]) or "arguments"
        parts.append(f"{location}: {issue['msg']}")
    return "; ".join(parts)


def parse_arguments(model: type[ModelT], arguments: Any) -> ModelT:
    """Validate raw tool arguments against an input model.

    Raises:
        MCPError: INVALID_INPUT when arguments are not an object or fail validation
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise MCPError(INVALID_INPUT, "Tool arguments must be a JSON object")
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        message = _describe(e)
        logger.warning(f"Invalid arguments for {model.__name__}: {message}")
        raise MCPError(INVALID_INPUT, message) from e
