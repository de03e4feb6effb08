"""Guarded tool execution: deadline, validation and result normalization."""

import asyncio
import json
from typing import Any

from pydantic import BaseModel

from seqthink.exceptions import ToolExecutionError, ToolNotFoundError, ToolTimeoutError
from seqthink.logging import get_logger
from seqthink.tools.registry import Tool, ToolCall, ToolExecutionResult, ToolRegistry

log = get_logger(__name__)

DEFAULT_TOOL_TIMEOUT_SECONDS = 30.0
NO_RESULT_TEXT = "Tool executed but returned no result"


def serialize_tool_output(value: Any) -> str | None:
    """Render a tool return value as text; ``None`` stays ``None``."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, list) and all(isinstance(item, BaseModel) for item in value):
        value = [item.model_dump(mode="json") for item in value]
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def _discard_outcome(task: asyncio.Task[Any]) -> None:
    """Consume the outcome of an abandoned tool task so it is never reported as lost."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug("Abandoned tool task finished with error", error=str(exc))


async def _run_with_deadline(tool: Tool, arguments: dict[str, Any], timeout_seconds: float) -> Any:
    """Race the tool against a timer; a late tool is abandoned, not awaited.

    The abandoned task gets a best-effort ``cancel()``. A tool that ignores
    cancellation, or runs in a worker thread, keeps running; only its
    result is discarded.
    """
    task = asyncio.create_task(tool.execute(**arguments))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        if task.cancelled():
            raise ToolExecutionError(tool.name, "Execution cancelled")
        return task.result()

    task.add_done_callback(_discard_outcome)
    task.cancel()
    raise ToolTimeoutError(tool.name, timeout_seconds)


def _failure(tool_name: str, message: str) -> ToolExecutionResult:
    return ToolExecutionResult(tool_name=tool_name, result=f"Error: {message}", success=False)


async def execute_tool_call(
    call: ToolCall | None,
    registry: ToolRegistry,
    timeout_seconds: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
) -> ToolExecutionResult:
    """Resolve, invoke and normalize one tool call.

    Never raises for tool-side problems: unknown tools, bad arguments,
    exceptions and timeouts all come back as ``success=False`` results the
    model can read on its next turn. Only cancellation of the caller
    propagates.
    """
    name = str(getattr(call, "name", "") or "").strip()
    if call is None or not name:
        return _failure(name or "unknown", "Invalid tool call - missing tool name")

    try:
        tool = registry.get(name)
    except ToolNotFoundError:
        available = ", ".join(registry.list_tools())
        return _failure(name, f"Tool '{name}' not found. Available tools: {available}")

    arguments = call.args if isinstance(call.args, dict) else {"raw": call.args}
    deadline = float(tool.timeout_seconds or timeout_seconds)

    try:
        tool.validate_arguments(arguments)
        log.info("Executing tool", tool=name, args=arguments)
        output = await _run_with_deadline(tool, arguments, deadline)
    except asyncio.CancelledError:
        raise
    except ToolTimeoutError as e:
        log.warning("Tool timed out", tool=name, timeout=deadline)
        return _failure(name, str(e))
    except ToolExecutionError as e:
        log.warning("Tool rejected call", tool=name, error=str(e))
        return _failure(name, str(e))
    except Exception as e:
        log.error("Tool execution failed", tool=name, error=str(e), error_type=type(e).__name__)
        return _failure(name, str(e) or type(e).__name__)

    text = serialize_tool_output(output)
    if text is None or not text.strip():
        log.warning("Tool returned no result", tool=name)
        return ToolExecutionResult(tool_name=name, result=NO_RESULT_TEXT, success=True)

    log.info("Tool executed", tool=name, success=True)
    return ToolExecutionResult(tool_name=name, result=text, success=True)
