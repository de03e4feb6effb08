"""Sequential thinking agent: stream, parse tool calls, run tools, repeat."""

from __future__ import annotations

from dataclasses import dataclass, field

from seqthink.abort import AbortSignal
from seqthink.adapters import ModelAdapter, message_requires_tools
from seqthink.config import AgentConfig, get_config
from seqthink.exceptions import FallbackError
from seqthink.instructions import InstructionLoader, get_instruction_loader
from seqthink.llm import ChatModel, Message, get_chat_model
from seqthink.logging import get_logger
from seqthink.memory import ChatMemory
from seqthink.observer import AgentObserver, LoggingObserver
from seqthink.protocol import (
    decode_tool_calls,
    encode_instruction,
    format_progress_marker,
    strip_tool_calls,
)
from seqthink.runner import (
    AgentResult,
    LoopOutcome,
    SinglePassRunner,
    Source,
    UpdateCallback,
    deduplicate_sources,
    extract_sources,
    notify,
    record_exchange,
    stream_response,
)
from seqthink.tools.guard import execute_tool_call
from seqthink.tools.registry import ToolExecutionResult, ToolRegistry, get_tool_registry

log = get_logger(__name__)


def join_segments(*segments: str) -> str:
    """Join display segments with blank lines, skipping empty ones."""
    return "\n\n".join(segment for segment in segments if segment)


def format_tool_results(results: list[ToolExecutionResult]) -> str:
    """Render tool results as the synthetic user turn fed back to the model."""
    return "\n\n".join(f"Tool '{result.tool_name}' result: {result.result}" for result in results)


@dataclass
class AgentLoopState:
    """Mutable state of one run; never shared between runs."""

    iteration: int = 0
    messages: list[Message] = field(default_factory=list)
    history: list[str] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    # Text of a response that was still streaming when the run was aborted.
    partial: str = ""

    def answer(self) -> str:
        partial = strip_tool_calls(self.partial) if self.partial else ""
        return join_segments(*self.history, partial)


class SequentialAgent:
    """Bounded request/parse/execute loop over a growing transcript."""

    def __init__(
        self,
        chat_model: ChatModel | None = None,
        tools: ToolRegistry | None = None,
        memory: ChatMemory | None = None,
        config: AgentConfig | None = None,
        observer: AgentObserver | None = None,
        fallback_runner: SinglePassRunner | None = None,
        instructions: InstructionLoader | None = None,
    ):
        """Initialize the agent.

        Args:
            chat_model: Streaming chat model; defaults to the configured one
            tools: Tool registry; snapshotted at the start of every run
            memory: Optional conversation memory for prior turns
            config: Loop settings; defaults to ``get_config().agent``
            observer: Receives loop events; defaults to structured logging
            fallback_runner: Runner used when the loop fails
            instructions: Prompt template loader
        """
        cfg = config or get_config().agent
        self.chat_model = chat_model or get_chat_model()
        self.tools = tools if tools is not None else get_tool_registry()
        self.memory = memory
        self.system_prompt = cfg.system_prompt
        self.max_iterations = max(1, int(cfg.max_iterations))
        self.tool_timeout_seconds = float(cfg.tool_timeout_seconds)
        self.source_tool = cfg.source_tool
        self.observer = observer or LoggingObserver(cfg.result_log_chars)
        self.instructions = instructions or get_instruction_loader()
        self.adapter = ModelAdapter(
            self.chat_model.model,
            search_tool=self.source_tool,
            loader=self.instructions,
        )
        self._fallback_runner = fallback_runner

    def generate_system_prompt(self, registry: ToolRegistry) -> str:
        tool_instruction = encode_instruction(registry.descriptors(), loader=self.instructions)
        return self.adapter.enhance_system_prompt(self.system_prompt, tool_instruction)

    def build_initial_messages(self, user_message: str, registry: ToolRegistry) -> list[Message]:
        messages = [Message(role="system", content=self.generate_system_prompt(registry))]
        if self.memory is not None:
            messages.extend(self.memory.load_history())
        content = self.adapter.enhance_user_message(user_message, message_requires_tools(user_message))
        messages.append(Message(role="user", content=content))
        return messages

    def get_fallback_runner(self) -> SinglePassRunner:
        if self._fallback_runner is not None:
            return self._fallback_runner
        return SinglePassRunner(self.chat_model, memory=self.memory, system_prompt=self.system_prompt)

    def _tool_results_turn(self, results: list[ToolExecutionResult]) -> str:
        content = format_tool_results(results)
        if self.adapter.needs_special_handling():
            content = f"{content}\n\n{self.instructions.load('tool_results_reminder.md')}"
        return content

    async def run(
        self,
        user_message: str,
        abort: AbortSignal | None = None,
        on_update: UpdateCallback | None = None,
    ) -> AgentResult:
        """Answer one user turn.

        Args:
            user_message: The user's message
            abort: Cooperative cancellation signal
            on_update: Receives the full display text whenever it changes

        Returns:
            AgentResult with the answer, sources and how the loop ended

        Raises:
            FallbackError if the loop and the single-pass fallback both fail
        """
        abort = abort or AbortSignal()
        state = AgentLoopState()
        try:
            outcome = await self._iterate(user_message, abort, state, on_update)
        except Exception as e:
            if not abort.aborted:
                log.error(
                    "Sequential thinking failed, falling back to single-pass mode",
                    error=str(e),
                    iteration=state.iteration,
                )
                return await self._run_fallback(user_message, abort, on_update, state, e)
            log.info("Sequential thinking aborted", reason=abort.reason)
            outcome = LoopOutcome.TERMINATED_ABORTED
        return self._finish(user_message, abort, state, outcome, on_update)

    async def _iterate(
        self,
        user_message: str,
        abort: AbortSignal,
        state: AgentLoopState,
        on_update: UpdateCallback | None,
    ) -> LoopOutcome:
        registry = self.tools.snapshot()
        state.messages = self.build_initial_messages(user_message, registry)

        def show_partial(text: str) -> None:
            state.partial = text
            notify(on_update, join_segments(*state.history, strip_tool_calls(text)))

        while state.iteration < self.max_iterations:
            if abort.aborted:
                return LoopOutcome.TERMINATED_ABORTED

            state.iteration += 1
            self.observer.iteration_started(state.iteration)

            response = await stream_response(self.chat_model, state.messages, abort, show_partial)
            state.partial = response
            if abort.aborted:
                return LoopOutcome.TERMINATED_ABORTED

            tool_calls = decode_tool_calls(response)
            state.history.append(strip_tool_calls(response))
            state.partial = ""

            if not tool_calls:
                return LoopOutcome.TERMINATED_FINAL

            results: list[ToolExecutionResult] = []
            progress: list[str] = []
            for call in tool_calls:
                if abort.aborted:
                    break

                self.observer.tool_called(state.iteration, call)
                progress.append(format_progress_marker(call.name))
                notify(on_update, join_segments(*state.history, *progress))

                result = await execute_tool_call(call, registry, self.tool_timeout_seconds)
                results.append(result)
                self.observer.tool_finished(state.iteration, result)

                if call.name == self.source_tool and result.success:
                    state.sources.extend(extract_sources(result.result))

            # Call-only replies still leave a visible trace in the answer.
            if progress:
                state.history.append("\n".join(progress))
            if abort.aborted:
                return LoopOutcome.TERMINATED_ABORTED

            state.messages.append(Message(role="assistant", content=response))
            state.messages.append(Message(role="user", content=self._tool_results_turn(results)))

        log.warning("Sequential thinking hit iteration limit", max_iterations=self.max_iterations)
        return LoopOutcome.TERMINATED_MAX_ITER

    def _finish(
        self,
        user_message: str,
        abort: AbortSignal,
        state: AgentLoopState,
        outcome: LoopOutcome,
        on_update: UpdateCallback | None,
    ) -> AgentResult:
        self.observer.terminated(outcome.value, state.iteration)

        if abort.discards_output:
            notify(on_update, "")
            return AgentResult(text="", outcome=outcome, iterations=state.iteration)

        text = state.answer()
        record_exchange(self.memory, user_message, text, abort)
        notify(on_update, text)
        return AgentResult(
            text=text,
            sources=deduplicate_sources(state.sources),
            outcome=outcome,
            iterations=state.iteration,
        )

    async def _run_fallback(
        self,
        user_message: str,
        abort: AbortSignal,
        on_update: UpdateCallback | None,
        state: AgentLoopState,
        error: Exception,
    ) -> AgentResult:
        self.observer.terminated(LoopOutcome.FALLBACK.value, state.iteration)
        try:
            result = await self.get_fallback_runner().run(user_message, abort, on_update)
        except Exception as fallback_error:
            log.error("Fallback to single-pass mode also failed", error=str(fallback_error))
            raise FallbackError(error, fallback_error) from fallback_error

        if result.outcome != LoopOutcome.TERMINATED_ABORTED:
            result.outcome = LoopOutcome.FALLBACK
        return result
