"""Custom exceptions for seqthink."""


class SeqThinkError(Exception):
    """Base exception for seqthink."""

    pass


class ConfigurationError(SeqThinkError):
    """Configuration-related errors."""

    pass


class LLMError(SeqThinkError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(SeqThinkError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ToolTimeoutError(ToolExecutionError):
    """Tool did not finish before its deadline."""

    def __init__(self, tool_name: str, timeout_seconds: float):
        label = int(timeout_seconds) if float(timeout_seconds).is_integer() else timeout_seconds
        super().__init__(tool_name, f"Tool execution timed out after {label}s")
        self.timeout_seconds = timeout_seconds


class AgentError(SeqThinkError):
    """Agent loop errors."""

    pass


class FallbackError(AgentError):
    """Both the sequential loop and the single-pass fallback failed."""

    def __init__(self, original: BaseException | None, fallback: BaseException):
        super().__init__(f"Fallback response failed: {fallback}")
        self.original = original
        self.fallback = fallback
