"""Linear workflow execution.

Nodes run one after another in definition order. A node's output is merged
into the shared parameters seen by later nodes (later keys win). A failing
node aborts the run unless it is explicitly marked ``"critical": false``.
"""

from __future__ import annotations

import json
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from devforge.db.models import ExecutionStatus
from devforge.utils.timezone import utc_now
from devforge.workflows.nodes import NodeContext, NodeExecutionError, NodeType, resolve_node_type


@dataclass
class WorkflowRunResult:
    status: str
    output: dict[str, Any]
    logs: list[str]
    duration: int
    node_executions: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "output": self.output,
            "logs": self.logs,
            "error": self.error,
            "duration": self.duration,
            "nodeExecutions": self.node_executions,
        }


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


def _nodes_of(definition: Any) -> list[Mapping[str, Any]]:
    if definition is not None and not isinstance(definition, Mapping):
        raise NodeExecutionError("Invalid workflow definition: expected an object")

    nodes = (definition or {}).get("nodes") or []
    if not isinstance(nodes, list):
        raise NodeExecutionError("Invalid node definition: nodes must be a list")
    if not nodes:
        raise NodeExecutionError("Workflow has no nodes defined")

    for position, node in enumerate(nodes):
        if not isinstance(node, Mapping):
            raise NodeExecutionError(f"Invalid node definition at position {position}: expected an object")
    return nodes


def is_critical(node: Mapping[str, Any]) -> bool:
    """Nodes are critical unless explicitly marked otherwise."""
    return node.get("critical") is not False


class WorkflowRunner:
    """Runs a workflow definition's nodes sequentially.

    Args:
        node_types: Node type registry (defaults to the built-in simulations)
        delay_scale: Multiplier for simulated node delays; 0 disables sleeping
        test_failure_rate: Probability that a simulated test node fails
        rng: Random source for simulated failures
        sleep: Blocking sleep function
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        node_types: Mapping[str, NodeType] | None = None,
        delay_scale: float = 1.0,
        test_failure_rate: float = 0.1,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.node_types = node_types
        self.delay_scale = delay_scale
        self.test_failure_rate = test_failure_rate
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock

    def run(
        self,
        workflow_name: str,
        definition: Mapping[str, Any] | None,
        parameters: Mapping[str, Any] | None = None,
        environment: str = "DEVELOPMENT",
    ) -> WorkflowRunResult:
        started = self.clock()
        state: dict[str, Any] = dict(parameters or {})
        logs: list[str] = []
        node_executions: list[dict[str, Any]] = []

        logs.append(f"Starting workflow: {workflow_name}")
        logs.append(f"Environment: {environment}")
        logs.append(f"Parameters: {json.dumps(state, default=str)}")

        try:
            for node in _nodes_of(definition):
                self._run_node(node, state, environment, logs, node_executions)
        except NodeExecutionError as e:
            finished = self.clock()
            logs.append(f"Workflow failed: {e}")
            logger.warning(f"Workflow {workflow_name} failed: {e}")
            return WorkflowRunResult(
                status=ExecutionStatus.FAILED.value,
                output=state,
                logs=logs,
                error=str(e),
                duration=_elapsed_ms(started, finished),
                node_executions=node_executions,
            )

        finished = self.clock()
        duration = _elapsed_ms(started, finished)
        logs.append(f"Workflow completed successfully in {duration}ms")
        logger.info(f"Workflow {workflow_name} completed with {len(node_executions)} node(s) in {duration}ms")
        return WorkflowRunResult(
            status=ExecutionStatus.SUCCESS.value,
            output=state,
            logs=logs,
            duration=duration,
            node_executions=node_executions,
        )

    def _run_node(
        self,
        node: Mapping[str, Any],
        state: dict[str, Any],
        environment: str,
        logs: list[str],
        node_executions: list[dict[str, Any]],
    ) -> None:
        node_type = node.get("type")
        node_name = node.get("name") or node.get("id") or str(node_type)
        kind = resolve_node_type(node_type, self.node_types)

        node_start = self.clock()
        logs.append(f"Executing node: {node_name} ({node_type})")

        record: dict[str, Any] = {
            "nodeId": node.get("id"),
            "nodeName": node_name,
            "nodeType": node_type,
        }

        try:
            if self.delay_scale > 0:
                self.sleep(kind.delay_seconds * self.delay_scale)
            ctx = NodeContext(node=node, rng=self.rng, test_failure_rate=self.test_failure_rate, now=self.clock)
            output = kind.handler(state, environment, ctx)
        except Exception as e:
            node_end = self.clock()
            message = str(e)
            record.update(
                status=ExecutionStatus.FAILED.value,
                startedAt=node_start.isoformat(),
                completedAt=node_end.isoformat(),
                duration=_elapsed_ms(node_start, node_end),
                error=message,
            )
            node_executions.append(record)
            logs.append(f"Node failed: {node_name} - {message}")

            if is_critical(node):
                if isinstance(e, NodeExecutionError):
                    raise
                raise NodeExecutionError(message) from e

            logger.info(f"Non-critical node {node_name} failed, continuing: {message}")
            return

        node_end = self.clock()
        record.update(
            status=ExecutionStatus.SUCCESS.value,
            startedAt=node_start.isoformat(),
            completedAt=node_end.isoformat(),
            duration=_elapsed_ms(node_start, node_end),
            output=output,
        )
        node_executions.append(record)
        logs.append(f"Node completed successfully: {node_name}")

        if isinstance(output, Mapping):
            state.update(output)
