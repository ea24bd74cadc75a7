"""Workflow node types.

Each node type maps to a simulated delay and a handler. Handlers take the
accumulated parameters, the target environment and a NodeContext, and
return an output mapping or raise NodeExecutionError. They are simulations:
no real deployment, test run or notification happens.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from devforge.utils.timezone import utc_now


class NodeExecutionError(RuntimeError):
    """A workflow node failed. Fatal to the run only when the node is critical."""


@dataclass
class NodeContext:
    node: Mapping[str, Any]
    rng: random.Random = field(default_factory=random.Random)
    test_failure_rate: float = 0.1
    now: Callable[[], datetime] = utc_now


NodeHandler = Callable[[Mapping[str, Any], str, NodeContext], dict[str, Any]]


@dataclass(frozen=True)
class NodeType:
    delay_seconds: float
    handler: NodeHandler


def run_deploy(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    return {
        "deploymentId": f"deploy-{int(ctx.now().timestamp() * 1000)}",
        "environment": environment,
        "status": "deployed",
    }


def run_test(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    if ctx.rng.random() < ctx.test_failure_rate:
        raise NodeExecutionError("Tests failed")
    return {
        "testResults": {
            "passed": 45,
            "failed": 0,
            "skipped": 2,
        },
    }


def run_notification(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    recipients = (ctx.node.get("config") or {}).get("recipients") or ["team@example.com"]
    return {
        "notificationSent": True,
        "recipients": list(recipients),
    }


def run_approval(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    # Auto-approved until an approval queue exists
    return {
        "approved": True,
        "approver": "system",
    }


def run_script(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    return {
        "scriptOutput": "Script executed successfully",
        "exitCode": 0,
    }


def run_generic(parameters: Mapping[str, Any], environment: str, ctx: NodeContext) -> dict[str, Any]:
    return {
        "nodeType": ctx.node.get("type"),
        "executed": True,
    }


NODE_TYPES: dict[str, NodeType] = {
    "deploy": NodeType(delay_seconds=2.0, handler=run_deploy),
    "test": NodeType(delay_seconds=1.0, handler=run_test),
    "notification": NodeType(delay_seconds=0.5, handler=run_notification),
    "approval": NodeType(delay_seconds=1.0, handler=run_approval),
    "script": NodeType(delay_seconds=1.5, handler=run_script),
}

GENERIC_NODE = NodeType(delay_seconds=0.5, handler=run_generic)


def resolve_node_type(node_type: str | None, registry: Mapping[str, NodeType] | None = None) -> NodeType:
    registry = NODE_TYPES if registry is None else registry
    if node_type is None:
        return GENERIC_NODE
    return registry.get(node_type, GENERIC_NODE)
