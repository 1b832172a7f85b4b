"""Resolves plan steps against the tool registry and turns every outcome into an observation."""

import logging
import time
from typing import Optional

from stepwise.core.cancellation import (
    CancellationToken,
    run_cancellable,
)
from stepwise.core.errors import (
    OperationCancelledError,
    ToolError,
)
from stepwise.core.schema import (
    ObservationStatus,
    PlanStep,
    StepObservation,
)
from stepwise.tools import ToolRegistry

logger = logging.getLogger(__name__)


def tool_block(name: str, output: str) -> str:
    """Label *output* with the tool that produced it."""
    return f"[Tool: {name}]\n{output}\n[/Tool]"


def unknown_tool_block(name: str) -> str:
    return f"[Unknown tool: {name}]"


async def execute_step(
    registry: ToolRegistry,
    step: PlanStep,
    cancel: Optional[CancellationToken] = None,
    log: logging.Logger = logger,
) -> StepObservation:
    """
    Look up ``step.tool`` in *registry* and run it with ``step.input``.

    Parameters
    ----------
    registry:
        Where tool names and aliases are resolved.
    step:
        The plan step to execute.
    cancel:
        Optional token; a running tool is abandoned when it fires.
    log:
        Logger that receives per-step timing.

    Returns
    -------
    StepObservation
        ``ok`` with the labelled output, ``tool_error`` with the labelled error text when the tool
        raised, or ``unknown_tool`` with a placeholder when the name does not resolve.
        Cancellation propagates.
    """
    label = step.tool.strip()
    tool = registry.try_get(label)
    if tool is None:
        log.warning("Unknown tool: %s", label)
        return StepObservation(
            tool=label,
            output=unknown_tool_block(label),
            status=ObservationStatus.UNKNOWN_TOOL,
        )

    log.info("Executing tool: %s (input: %s)", tool.name, step.input)
    started = time.perf_counter()
    try:
        output = await run_cancellable(tool.execute(step.input, cancel), cancel)
        status = ObservationStatus.OK
    except OperationCancelledError:
        raise
    except ToolError as exc:
        log.warning("Tool '%s' failed: %s", label, exc)
        output = f"Error: {exc}"
        status = ObservationStatus.TOOL_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        log.exception("Unhandled error in tool '%s'", label)
        output = f"Error: {exc}"
        status = ObservationStatus.TOOL_ERROR
    elapsed_ms = (time.perf_counter() - started) * 1000
    log.info("[%s] finished in %.0f ms", label, elapsed_ms)

    return StepObservation(
        tool=label,
        output=tool_block(label, output),
        status=status,
        elapsed_ms=elapsed_ms,
    )
