"""Tool registry, base tool class and the records exchanged with the agent loop."""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from pydantic import BaseModel, Field

from seqthink.exceptions import ToolExecutionError, ToolNotFoundError
from seqthink.logging import get_logger

log = get_logger(__name__)


class ToolCall(BaseModel):
    """A tool invocation decoded from model output."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolDescriptor(BaseModel):
    """Metadata the prompt needs to describe a tool to the model."""

    name: str
    description: str = ""
    argument_schema: dict[str, str] = Field(default_factory=dict)
    required: tuple[str, ...] = ()
    # Tools whose argument contract is easy to get wrong carry a worked example.
    example_args: dict[str, Any] | None = None

    @property
    def is_high_risk(self) -> bool:
        return self.example_args is not None


class ToolExecutionResult(BaseModel):
    """Uniform outcome of one guarded tool call."""

    tool_name: str
    result: str
    success: bool


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    # Argument name -> human readable description.
    parameters: dict[str, str] = {}
    required: tuple[str, ...] = ()
    example_args: dict[str, Any] | None = None
    # None means "use the guard's default deadline".
    timeout_seconds: float | None = None

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments

        Returns:
            Any value; the guard turns it into display-safe text
        """
        pass

    def get_descriptor(self) -> ToolDescriptor:
        """Describe this tool for prompt assembly."""
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            argument_schema=dict(self.parameters),
            required=tuple(self.required),
            example_args=dict(self.example_args) if self.example_args is not None else None,
        )

    def validate_arguments(self, arguments: Mapping[str, Any]) -> None:
        """Validate tool arguments against the declared required fields.

        Raises:
            ToolExecutionError if a required argument is missing
        """
        for field in self.required:
            if field not in arguments:
                raise ToolExecutionError(
                    self.name,
                    f"Missing required argument: {field}",
                )


class FunctionTool(Tool):
    """Adapt a plain (sync or async) callable to the Tool interface."""

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        description: str = "",
        parameters: Mapping[str, str] | None = None,
        required: tuple[str, ...] | list[str] = (),
        example_args: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ):
        self.name = name
        self.func = func
        self.description = description or inspect.getdoc(func) or ""
        self.parameters = dict(parameters or {})
        self.required = tuple(required)
        self.example_args = example_args
        self.timeout_seconds = timeout_seconds

    def validate_arguments(self, arguments: Mapping[str, Any]) -> None:
        super().validate_arguments(arguments)
        try:
            inspect.signature(self.func).bind(**arguments)
        except TypeError as e:
            raise ToolExecutionError(self.name, f"Invalid arguments: {e}") from e

    async def execute(self, **kwargs: Any) -> Any:
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        # Sync tools run off the event loop so the guard's deadline still applies.
        return await asyncio.to_thread(self.func, **kwargs)


class ToolRegistry:
    """Registry for managing available tools."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool, replace: bool = False) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register
            replace: Allow overwriting a tool with the same name
        """
        if not tool.name or not tool.name.strip():
            raise ValueError("Tool must have a name")
        if tool.name in self._tools and not replace:
            raise ValueError(f"Tool '{tool.name}' is already registered.")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def register_function(self, name: str, func: Callable[..., Any], **kwargs: Any) -> FunctionTool:
        """Wrap *func* in a FunctionTool and register it."""
        tool = FunctionTool(name, func, **kwargs)
        self.register(tool)
        return tool

    def unregister(self, name: str) -> None:
        """Unregister a tool.

        Args:
            name: Tool name to unregister
        """
        self._tools.pop(name, None)

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools.keys())

    def descriptors(self) -> list[ToolDescriptor]:
        """Descriptors for every registered tool, in registration order."""
        return [tool.get_descriptor() for tool in self._tools.values()]

    def snapshot(self) -> "ToolRegistry":
        """Return a copy that later registrations do not affect."""
        return ToolRegistry(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)


# Global registry
_registry: ToolRegistry | None = None


def get_tool_registry() -> ToolRegistry:
    """Get the global tool registry."""
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
    return _registry


def set_tool_registry(registry: ToolRegistry) -> None:
    """Set the global tool registry."""
    global _registry
    _registry = registry
