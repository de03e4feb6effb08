"""Structured events emitted by the agent loop at fixed points."""

import json

from seqthink.logging import get_logger
from seqthink.tools.registry import ToolCall, ToolExecutionResult

log = get_logger(__name__)


class AgentObserver:
    """No-op base; override the hooks you care about."""

    def iteration_started(self, iteration: int) -> None:
        pass

    def tool_called(self, iteration: int, call: ToolCall) -> None:
        pass

    def tool_finished(self, iteration: int, result: ToolExecutionResult) -> None:
        pass

    def terminated(self, outcome: str, iterations: int) -> None:
        pass


class LoggingObserver(AgentObserver):
    """Default observer: writes loop events to the structured log."""

    def __init__(self, result_log_chars: int = 500):
        self.result_log_chars = result_log_chars

    def iteration_started(self, iteration: int) -> None:
        log.info("Sequential thinking iteration", iteration=iteration)

    def tool_called(self, iteration: int, call: ToolCall) -> None:
        params = json.dumps(call.args, ensure_ascii=False) if call.args else "(no parameters)"
        log.info("Tool call", iteration=iteration, tool=call.name, params=params)

    def tool_finished(self, iteration: int, result: ToolExecutionResult) -> None:
        text = result.result
        if len(text) > self.result_log_chars:
            text = f"{text[: self.result_log_chars]}... (truncated, {len(result.result)} chars total)"
        log.info(
            "Tool result",
            iteration=iteration,
            tool=result.tool_name,
            status="SUCCESS" if result.success else "FAILED",
            result=text,
        )

    def terminated(self, outcome: str, iterations: int) -> None:
        log.info("Sequential thinking finished", outcome=outcome, iterations=iterations)
