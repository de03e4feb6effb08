"""Tools package for seqthink."""

from seqthink.tools.clock import GetCurrentTimeTool
from seqthink.tools.guard import (
    DEFAULT_TOOL_TIMEOUT_SECONDS,
    NO_RESULT_TEXT,
    execute_tool_call,
    serialize_tool_output,
)
from seqthink.tools.registry import (
    FunctionTool,
    Tool,
    ToolCall,
    ToolDescriptor,
    ToolExecutionResult,
    ToolRegistry,
    get_tool_registry,
    set_tool_registry,
)

__all__ = [
    "DEFAULT_TOOL_TIMEOUT_SECONDS",
    "NO_RESULT_TEXT",
    "FunctionTool",
    "GetCurrentTimeTool",
    "Tool",
    "ToolCall",
    "ToolDescriptor",
    "ToolExecutionResult",
    "ToolRegistry",
    "execute_tool_call",
    "get_tool_registry",
    "serialize_tool_output",
    "set_tool_registry",
]
