"""Workflow execution tools for the MCP server."""

from __future__ import annotations

from datetime import timedelta

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from devforge.config.settings import settings
from devforge.db.models import ExecutionStatus, User, WorkflowExecution
from devforge.db.repository import find_active_workflow_by_name, similar_workflow_names
from devforge.db.session import SessionFactory, get_session
from devforge.mcp_server.content import not_found, text_content
from devforge.mcp_server.schemas import ExecuteWorkflowInput, GetWorkflowStatusInput, parse_arguments
from devforge.utils.timezone import isoformat_or_none, utc_now
from devforge.workflows.runner import WorkflowRunner

ACTIVE_EXECUTION_LIMIT = 50
RECENT_EXECUTION_LIMIT = 100
RECENT_EXECUTION_WINDOW = timedelta(hours=24)
ACTIVE_EXECUTION_STATUSES = (ExecutionStatus.PENDING.value, ExecutionStatus.RUNNING.value)
FINISHED_EXECUTION_STATUSES = (
    ExecutionStatus.SUCCESS.value,
    ExecutionStatus.FAILED.value,
    ExecutionStatus.CANCELLED.value,
)


def build_runner() -> WorkflowRunner:
    """Runner configured from settings."""
    return WorkflowRunner(
        delay_scale=settings.workflow_delay_scale,
        test_failure_rate=settings.workflow_test_failure_rate,
    )


def _triggered_by(session: Session, user_id: str) -> str:
    user = session.execute(select(User).where(or_(User.id == user_id, User.email == user_id))).scalars().first()
    return user.display_name if user else user_id


def execute_workflow_tool(
    arguments: dict,
    session_factory: SessionFactory = get_session,
    runner: WorkflowRunner | None = None,
) -> dict:
    """Run an active workflow by name and record the execution.

    The execution row is committed as PENDING before the run starts and
    updated once with the final outcome.
    """
    args = parse_arguments(ExecuteWorkflowInput, arguments)
    runner = runner or build_runner()
    workflow_name = args.workflow_name

    try:
        with session_factory() as session:
            workflow = find_active_workflow_by_name(session, workflow_name)
            if workflow is None:
                return not_found(
                    f'Workflow "{workflow_name}" not found or not active',
                    suggestions=similar_workflow_names(session, workflow_name),
                )

            execution = WorkflowExecution(
                workflow_id=workflow.id,
                user_id=args.user_id,
                status=ExecutionStatus.PENDING.value,
                input=dict(args.parameters),
                started_at=utc_now(),
            )
            session.add(execution)
            session.flush()

            execution_id = execution.id
            started_at = execution.started_at
            definition = workflow.definition
            resolved_name = workflow.name

        logger.info(f"Workflow execution started: {resolved_name} ({execution_id})")
        try:
            result = runner.run(resolved_name, definition, args.parameters, args.environment)
        except Exception as e:
            logger.exception(f"Workflow execution crashed: {resolved_name} ({execution_id})")
            with session_factory() as session:
                execution = session.get(WorkflowExecution, execution_id)
                execution.status = ExecutionStatus.FAILED.value
                execution.error = str(e)
                execution.completed_at = utc_now()
            raise

        with session_factory() as session:
            execution = session.get(WorkflowExecution, execution_id)
            execution.status = result.status
            execution.output = result.output
            execution.logs = result.logs
            execution.error = result.error
            execution.duration = result.duration
            execution.node_executions = result.node_executions
            execution.completed_at = utc_now()

        logger.info(f"Workflow execution finished: {resolved_name} ({execution_id}) status={result.status}")
        return text_content(
            {
                "executionId": execution_id,
                "workflowName": resolved_name,
                "status": result.status,
                "startedAt": isoformat_or_none(started_at),
                "parameters": args.parameters,
                "environment": args.environment,
                "message": f'Workflow "{resolved_name}" execution initiated',
                "logs": result.logs,
            }
        )

    except SQLAlchemyError:
        logger.exception(f"Database error executing workflow {workflow_name}")
        raise


def get_workflow_status_tool(arguments: dict, session_factory: SessionFactory = get_session) -> dict:
    """Status, logs and node outcomes of one workflow execution."""
    args = parse_arguments(GetWorkflowStatusInput, arguments)
    execution_id = args.execution_id

    try:
        with session_factory() as session:
            execution = session.get(WorkflowExecution, execution_id, options=[selectinload(WorkflowExecution.workflow)])
            if execution is None:
                return not_found(f'Workflow execution "{execution_id}" not found')

            status_info = {
                "executionId": execution.id,
                "workflow": {
                    "name": execution.workflow.name,
                    "description": execution.workflow.description,
                },
                "status": execution.status,
                "triggeredBy": _triggered_by(session, execution.user_id),
                "startedAt": isoformat_or_none(execution.started_at),
                "completedAt": isoformat_or_none(execution.completed_at),
                "duration": execution.duration,
                "input": execution.input,
                "output": execution.output,
                "logs": execution.logs,
                "error": execution.error,
                "nodeExecutions": execution.node_executions,
            }

        logger.info(f"Retrieved workflow status for execution: {execution_id}")
        return text_content(status_info)

    except SQLAlchemyError:
        logger.exception(f"Database error getting workflow status for {execution_id}")
        raise


def _execution_row(session: Session, execution: WorkflowExecution) -> dict:
    return {
        "executionId": execution.id,
        "workflowName": execution.workflow.name,
        "status": execution.status,
        "triggeredBy": _triggered_by(session, execution.user_id),
        "startedAt": isoformat_or_none(execution.started_at),
        "completedAt": isoformat_or_none(execution.completed_at),
        "duration": execution.duration,
    }


def active_workflows_resource(session_factory: SessionFactory = get_session) -> dict:
    """Pending/running executions plus executions finished in the last 24 hours."""
    try:
        since = utc_now() - RECENT_EXECUTION_WINDOW
        with session_factory() as session:
            active = list(
                session.execute(
                    select(WorkflowExecution)
                    .options(selectinload(WorkflowExecution.workflow))
                    .where(WorkflowExecution.status.in_(ACTIVE_EXECUTION_STATUSES))
                    .order_by(WorkflowExecution.started_at.desc())
                    .limit(ACTIVE_EXECUTION_LIMIT)
                ).scalars()
            )
            recent = list(
                session.execute(
                    select(WorkflowExecution)
                    .options(selectinload(WorkflowExecution.workflow))
                    .where(
                        WorkflowExecution.status.in_(FINISHED_EXECUTION_STATUSES),
                        WorkflowExecution.completed_at >= since,
                    )
                    .order_by(WorkflowExecution.completed_at.desc())
                    .limit(RECENT_EXECUTION_LIMIT)
                ).scalars()
            )

            successful = sum(1 for e in recent if e.status == ExecutionStatus.SUCCESS)
            workflow_data = {
                "activeExecutions": [_execution_row(session, e) for e in active],
                "recentExecutions": [_execution_row(session, e) for e in recent],
                "summary": {
                    "activeCount": len(active),
                    "recentCount": len(recent),
                    "successRate": (successful / len(recent)) * 100 if recent else 0.0,
                },
            }

        return text_content(workflow_data)

    except SQLAlchemyError:
        logger.exception("Database error getting active workflows")
        raise
