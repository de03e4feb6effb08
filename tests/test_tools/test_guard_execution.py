import asyncio
import time

import pytest
from pydantic import BaseModel

from seqthink.tools.guard import NO_RESULT_TEXT, execute_tool_call, serialize_tool_output
from seqthink.tools.registry import FunctionTool, Tool, ToolCall, ToolRegistry


class EchoTool(Tool):
    name = "echo"
    description = "Echo"
    parameters = {"text": "Text to echo"}
    required = ("text",)

    async def execute(self, **kwargs):
        return kwargs["text"]


class SlowTool(Tool):
    name = "slow"
    description = "Slow"
    timeout_seconds = 0.05

    def __init__(self):
        self.cancelled = False

    async def execute(self, **kwargs):
        try:
            await asyncio.sleep(2.0)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return "done"


class SilentTool(Tool):
    name = "silent"
    description = "Returns nothing"

    async def execute(self, **kwargs):
        return None


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails"

    async def execute(self, **kwargs):
        raise RuntimeError("backend unavailable")


class Hit(BaseModel):
    title: str
    score: float


@pytest.mark.asyncio
async def test_unknown_tool_lists_available_tools():
    registry = ToolRegistry([EchoTool(), SilentTool()])

    result = await execute_tool_call(ToolCall(name="doesNotExist"), registry)

    assert result.success is False
    assert result.tool_name == "doesNotExist"
    assert result.result == "Error: Tool 'doesNotExist' not found. Available tools: echo, silent"


@pytest.mark.asyncio
async def test_missing_tool_name_is_rejected():
    result = await execute_tool_call(ToolCall(name="  "), ToolRegistry())

    assert result.success is False
    assert result.result == "Error: Invalid tool call - missing tool name"


@pytest.mark.asyncio
async def test_successful_call_returns_text():
    registry = ToolRegistry([EchoTool()])

    result = await execute_tool_call(ToolCall(name="echo", args={"text": "hi"}), registry)

    assert result.success is True
    assert result.result == "hi"


@pytest.mark.asyncio
async def test_missing_required_argument():
    registry = ToolRegistry([EchoTool()])

    result = await execute_tool_call(ToolCall(name="echo", args={}), registry)

    assert result.success is False
    assert result.result == "Error: Tool 'echo' failed: Missing required argument: text"


@pytest.mark.asyncio
async def test_timeout_returns_error_result_and_discards_late_tool():
    tool = SlowTool()
    registry = ToolRegistry([tool])

    result = await execute_tool_call(ToolCall(name="slow"), registry)
    await asyncio.sleep(0.01)

    assert result.success is False
    assert "timed out after 0.05s" in result.result
    assert result.result.startswith("Error: ")
    assert tool.cancelled is True


@pytest.mark.asyncio
async def test_timeout_ignores_sync_tool_still_running_in_thread():
    finished: list[str] = []

    def blocking():
        time.sleep(0.3)
        finished.append("late")
        return "late"

    registry = ToolRegistry([FunctionTool("blocking", blocking, timeout_seconds=0.05)])

    result = await execute_tool_call(ToolCall(name="blocking"), registry)

    assert result.success is False
    assert "timed out after 0.05s" in result.result
    assert finished == []


@pytest.mark.asyncio
async def test_guard_default_deadline_applies_when_tool_has_none():
    async def sleeper():
        await asyncio.sleep(2.0)

    registry = ToolRegistry([FunctionTool("sleeper", sleeper)])

    result = await execute_tool_call(ToolCall(name="sleeper"), registry, timeout_seconds=0.05)

    assert result.success is False
    assert "timed out" in result.result


@pytest.mark.asyncio
async def test_none_result_is_success_with_placeholder():
    result = await execute_tool_call(ToolCall(name="silent"), ToolRegistry([SilentTool()]))

    assert result.success is True
    assert result.result == NO_RESULT_TEXT


@pytest.mark.asyncio
async def test_exception_becomes_error_text():
    result = await execute_tool_call(ToolCall(name="broken"), ToolRegistry([BrokenTool()]))

    assert result.success is False
    assert result.result == "Error: backend unavailable"


@pytest.mark.asyncio
async def test_sync_function_tool_and_structured_output():
    def lookup(query: str):
        return [Hit(title=f"{query}.md", score=0.5)]

    registry = ToolRegistry()
    registry.register_function("lookup", lookup, required=("query",))

    result = await execute_tool_call(ToolCall(name="lookup", args={"query": "piano"}), registry)

    assert result.success is True
    assert result.result == '[{"title": "piano.md", "score": 0.5}]'


@pytest.mark.asyncio
async def test_function_tool_rejects_unexpected_arguments():
    async def ping():
        return "pong"

    registry = ToolRegistry([FunctionTool("ping", ping)])

    result = await execute_tool_call(ToolCall(name="ping", args={"extra": 1}), registry)

    assert result.success is False
    assert "Invalid arguments" in result.result


@pytest.mark.asyncio
async def test_caller_cancellation_propagates():
    tool = SlowTool()
    tool.timeout_seconds = 5.0
    registry = ToolRegistry([tool])

    task = asyncio.create_task(execute_tool_call(ToolCall(name="slow"), registry))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_serialize_tool_output_variants():
    assert serialize_tool_output(None) is None
    assert serialize_tool_output("text") == "text"
    assert serialize_tool_output({"a": 1}) == '{"a": 1}'
    assert serialize_tool_output(Hit(title="t", score=1.0)) == '{"title":"t","score":1.0}'
    assert serialize_tool_output(3) == "3"
