"""Single-pass chat runner and the pieces it shares with the sequential agent."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from seqthink.abort import AbortSignal
from seqthink.exceptions import FallbackError
from seqthink.llm import ChatModel, Message
from seqthink.logging import get_logger
from seqthink.memory import ChatMemory
from seqthink.streaming import ReasoningStreamer

log = get_logger(__name__)

UpdateCallback = Callable[[str], None]


class LoopOutcome(str, Enum):
    """How a run ended."""

    TERMINATED_FINAL = "terminated_final"
    TERMINATED_MAX_ITER = "terminated_max_iter"
    TERMINATED_ABORTED = "terminated_aborted"
    FALLBACK = "fallback"


class Source(BaseModel):
    """A retrieved document cited in the answer."""

    title: str
    score: float = 0.0


@dataclass
class AgentResult:
    """Final answer plus provenance for one user turn."""

    text: str
    sources: list[Source] = field(default_factory=list)
    outcome: LoopOutcome = LoopOutcome.TERMINATED_FINAL
    iterations: int = 0

    @property
    def is_incomplete(self) -> bool:
        """True when the loop was cut off by its iteration bound."""
        return self.outcome == LoopOutcome.TERMINATED_MAX_ITER


def notify(on_update: UpdateCallback | None, text: str) -> None:
    if on_update is not None:
        on_update(text)


async def stream_response(
    chat_model: ChatModel,
    messages: list[Message],
    abort: AbortSignal,
    on_update: UpdateCallback | None = None,
) -> str:
    """Consume one streamed model reply, returning the reconstructed text.

    An abort stops consumption between chunks; whatever arrived so far is
    returned. Errors raised after an abort are treated as the abort itself.
    """
    streamer = ReasoningStreamer(on_update)
    stream = chat_model.stream(messages, abort)
    try:
        async for chunk in stream:
            if abort.aborted:
                log.info("Stream iteration aborted", reason=abort.reason)
                break
            streamer.process_chunk(chunk)
    except Exception:
        if not abort.aborted:
            raise
        log.info("Stream aborted by user", reason=abort.reason)
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
    return streamer.close()


def extract_sources(result_text: str) -> list[Source]:
    """Read ``{title|path, score|rerank_score}`` entries from a JSON search result."""
    try:
        documents = json.loads(result_text)
    except json.JSONDecodeError as e:
        log.warning("Failed to parse search results for sources", error=str(e))
        return []
    if not isinstance(documents, list):
        return []

    sources: list[Source] = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        title = doc.get("title") or doc.get("path")
        if not title:
            log.warning("Search result without title", doc=doc)
            continue
        raw_score = doc.get("rerank_score") or doc.get("score") or 0
        try:
            score = float(raw_score)
        except (TypeError, ValueError):
            score = 0.0
        sources.append(Source(title=str(title), score=score))
    return sources


def deduplicate_sources(sources: list[Source]) -> list[Source]:
    """Keep the best-scoring entry per title, highest score first."""
    unique: dict[str, Source] = {}
    for source in sources:
        existing = unique.get(source.title)
        if existing is None or source.score > existing.score:
            unique[source.title] = source
    return sorted(unique.values(), key=lambda s: s.score, reverse=True)


def record_exchange(
    memory: ChatMemory | None,
    user_message: str,
    response: str,
    abort: AbortSignal,
) -> None:
    """Save the exchange unless there is nothing to save or the chat is being discarded."""
    if memory is None or not response or abort.discards_output:
        return
    memory.save_context(user_message, response)


def describe_error(error: BaseException) -> str:
    """User-facing text for a transport or fallback failure."""
    if isinstance(error, FallbackError):
        return describe_error(error.fallback)
    message = str(error) or type(error).__name__
    status_code = getattr(error, "status_code", None)
    if status_code == 404 or "model_not_found" in message:
        return (
            "You do not have access to this model or the model does not exist, "
            "please check with your API provider."
        )
    if status_code == 401 or re.search(r"401|invalid api key|not valid", message, re.IGNORECASE):
        return (
            "Something went wrong. Please check if you have set your API key."
            "\nOr check model config"
            f"\nError Details: {message}"
        )
    return message


class SinglePassRunner:
    """Plain chat: one streamed reply, no tools.

    Used directly, or by the sequential agent as its fallback when the tool
    loop fails.
    """

    def __init__(
        self,
        chat_model: ChatModel,
        memory: ChatMemory | None = None,
        system_prompt: str = "",
    ):
        self.chat_model = chat_model
        self.memory = memory
        self.system_prompt = system_prompt

    def build_messages(self, user_message: str) -> list[Message]:
        messages: list[Message] = []
        if self.system_prompt:
            messages.append(Message(role="system", content=self.system_prompt))
        if self.memory is not None:
            messages.extend(self.memory.load_history())
        messages.append(Message(role="user", content=user_message))
        return messages

    async def run(
        self,
        user_message: str,
        abort: AbortSignal | None = None,
        on_update: UpdateCallback | None = None,
    ) -> AgentResult:
        """Stream one reply; transport errors propagate to the caller."""
        abort = abort or AbortSignal()
        messages = self.build_messages(user_message)
        log.debug("Single-pass request", message_count=len(messages))

        response = await stream_response(self.chat_model, messages, abort, on_update)

        if abort.discards_output:
            notify(on_update, "")
            return AgentResult(text="", outcome=LoopOutcome.TERMINATED_ABORTED, iterations=1)

        record_exchange(self.memory, user_message, response, abort)
        outcome = LoopOutcome.TERMINATED_ABORTED if abort.aborted else LoopOutcome.TERMINATED_FINAL
        return AgentResult(text=response, outcome=outcome, iterations=1)
