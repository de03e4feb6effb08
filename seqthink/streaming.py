"""Rebuild one display text from heterogeneous streaming chunks.

Providers deliver reasoning in two shapes: as ``thinking`` parts inside a
list-valued ``content`` (Anthropic style), or through a side channel next to
plain string content (DeepSeek ``reasoning_content``, Ollama ``thinking``).
Both end up as ``<think>...</think>`` spans in the reconstructed text.
"""

from typing import Any, Callable, Mapping

from seqthink.llm import ContentPart, StreamChunk

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


def _coerce_chunk(chunk: StreamChunk | Mapping[str, Any] | str) -> StreamChunk:
    if isinstance(chunk, StreamChunk):
        return chunk
    if isinstance(chunk, str):
        return StreamChunk(content=chunk)
    return StreamChunk.from_payload(chunk)


class ReasoningStreamer:
    """Accumulate streamed text, wrapping reasoning in think markers.

    ``on_update`` receives the whole text so far after every chunk.
    """

    def __init__(self, on_update: Callable[[str], None] | None = None):
        self._on_update = on_update
        self._thinking_open = False
        self._buffer = ""

    @property
    def text(self) -> str:
        return self._buffer

    @property
    def thinking_open(self) -> bool:
        return self._thinking_open

    def _publish(self) -> None:
        if self._on_update is not None:
            self._on_update(self._buffer)

    def _append_reasoning(self, text: str) -> None:
        if not self._thinking_open:
            self._buffer += f"\n{THINK_OPEN}" if self._buffer else THINK_OPEN
            self._thinking_open = True
        self._buffer += text

    def _append_answer(self, text: str) -> None:
        if self._thinking_open:
            self._buffer += THINK_CLOSE
            self._thinking_open = False
        self._buffer += text

    def _process_parts(self, parts: list[ContentPart]) -> bool:
        """Handle a multi-part delta; returns whether any reasoning was seen."""
        handled_reasoning = False
        for part in parts:
            if part.is_reasoning:
                if part.value:
                    self._append_reasoning(part.value)
                    handled_reasoning = True
            elif part.value:
                self._append_answer(part.value)
        return handled_reasoning

    def process_chunk(self, chunk: StreamChunk | Mapping[str, Any] | str) -> None:
        """Fold one chunk into the buffer and publish it."""
        chunk = _coerce_chunk(chunk)
        handled_reasoning = False

        if isinstance(chunk.content, list):
            handled_reasoning = self._process_parts(chunk.content)
        else:
            # Content first, then side-channel reasoning, which leaves the block open.
            if chunk.content:
                self._append_answer(chunk.content)
            if chunk.reasoning_content:
                self._append_reasoning(chunk.reasoning_content)
                handled_reasoning = True

        # The first chunk without reasoning ends the thinking block.
        if self._thinking_open and not handled_reasoning:
            self._buffer += THINK_CLOSE
            self._thinking_open = False

        self._publish()

    def close(self) -> str:
        """Close any open reasoning block and return the final text."""
        if self._thinking_open:
            self._buffer += THINK_CLOSE
            self._thinking_open = False
        self._publish()
        return self._buffer
