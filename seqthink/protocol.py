"""Tool-call protocol embedded in free-form model output.

A call looks like::

    <use_tool>
    <name>webSearch</name>
    <args>{"query": "piano practice"}</args>
    </use_tool>

``decode_tool_calls`` and ``strip_tool_calls`` share ``TOOL_CALL_RE`` so that
anything the decoder would parse is also removed from display text.
"""

import json
import re
from typing import Iterable

from seqthink.instructions import InstructionLoader, get_instruction_loader
from seqthink.logging import get_logger
from seqthink.tools.registry import ToolCall, ToolDescriptor

log = get_logger(__name__)

TOOL_CALL_RE = re.compile(r"<use_tool>([\s\S]*?)</use_tool>")
_NAME_RE = re.compile(r"<name>([\s\S]*?)</name>")
_ARGS_RE = re.compile(r"<args>([\s\S]*?)</args>")
_FENCE_LANG_RE = re.compile(r"^\w*")
_BLANK_RUN_RE = re.compile(r"\n\s*\n\s*\n")

RESERVED_FENCE_LANGUAGE = "tool_code"

_DISPLAY_NAMES = {
    "localSearch": "vault search",
    "webSearch": "web search",
    "getFileTree": "file tree",
    "getCurrentTime": "current time",
    "getTimeRangeMs": "time range",
    "getTimeInfoByEpoch": "time info",
    "pomodoroTool": "pomodoro timer",
    "simpleYoutubeTranscriptionTool": "YouTube transcription",
    "indexTool": "index",
}

_EMOJIS = {
    "localSearch": "🔍",
    "webSearch": "🌐",
    "getFileTree": "📁",
    "getCurrentTime": "🕒",
    "pomodoroTool": "⏱️",
    "simpleYoutubeTranscriptionTool": "📺",
    "indexTool": "📚",
}


def tool_display_name(name: str) -> str:
    """Human readable tool name, falling back to the raw name."""
    return _DISPLAY_NAMES.get(name, name)


def tool_emoji(name: str) -> str:
    return _EMOJIS.get(name, "🔧")


def format_tool_indicator(name: str) -> str:
    """Marker left in place of a stripped call."""
    return f"*Tool call: {tool_display_name(name)}*"


def format_progress_marker(name: str) -> str:
    """Live-display line shown while a tool runs."""
    return f"{tool_emoji(name)} *Calling {tool_display_name(name)}...*"


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------
def _format_call(name: str, args: dict) -> str:
    payload = json.dumps(args, indent=2, ensure_ascii=False)
    return f"<use_tool>\n<name>{name}</name>\n<args>\n{payload}\n</args>\n</use_tool>"


def _format_tool_description(descriptor: ToolDescriptor) -> str:
    lines = [f"- {descriptor.name}: {descriptor.description or 'No description'}"]
    fields = list(descriptor.argument_schema.keys())
    fields += [name for name in descriptor.required if name not in descriptor.argument_schema]
    for field in fields:
        marker = "required" if field in descriptor.required else "optional"
        detail = descriptor.argument_schema.get(field) or "No description"
        lines.append(f"  - {field} ({marker}): {detail}")
    return "\n".join(lines)


def _format_argument_rule(descriptor: ToolDescriptor) -> str:
    quoted = [f'"{name}"' for name in descriptor.required]
    if len(quoted) == 1:
        needed = quoted[0]
    elif len(quoted) == 2:
        needed = f"both {quoted[0]} and {quoted[1]}"
    else:
        needed = "all of " + ", ".join(quoted)
    return f"CRITICAL: For {descriptor.name}, you MUST always provide {needed}."


def encode_instruction(
    tools: Iterable[ToolDescriptor],
    loader: InstructionLoader | None = None,
) -> str:
    """Render the prompt section that teaches the model the call grammar.

    The output depends only on the descriptors (and the template), so the
    same tool set always yields the same text.
    """
    descriptors = list(tools)
    high_risk = [d for d in descriptors if d.is_high_risk]

    examples = ""
    if high_risk:
        blocks = [f"For {d.name}:\n{_format_call(d.name, d.example_args or {})}" for d in high_risk]
        examples = "## Important Tool Usage Examples:\n\n" + "\n\n".join(blocks)

    if descriptors:
        tool_descriptions = "\n\n".join(_format_tool_description(d) for d in descriptors)
    else:
        tool_descriptions = "No tools are currently available."

    argument_rules = "\n".join(_format_argument_rule(d) for d in high_risk if d.required)

    rendered = (loader or get_instruction_loader()).render(
        "tool_protocol.md",
        examples=examples,
        tool_descriptions=tool_descriptions,
        argument_rules=argument_rules,
    )
    return _BLANK_RUN_RE.sub("\n\n", rendered).strip()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
def _parse_args(raw: str | None) -> dict:
    if raw is None:
        return {}
    text = raw.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        log.warning("Failed to parse tool arguments, using raw text", error=str(e))
        return {"raw": text}
    if not isinstance(parsed, dict):
        log.warning("Tool arguments are not a JSON object, using raw text")
        return {"raw": text}
    return parsed


def decode_tool_calls(text: str) -> list[ToolCall]:
    """Extract every tool call from *text*, in document order.

    Calls without a usable name are skipped; unparseable arguments degrade to
    ``{"raw": ...}``. An unexpected failure yields an empty list for the whole
    text rather than an exception.
    """
    calls: list[ToolCall] = []
    try:
        for match in TOOL_CALL_RE.finditer(text or ""):
            body = match.group(1)
            name_match = _NAME_RE.search(body)
            if name_match is None:
                log.warning("Skipping tool call without a name field")
                continue
            name = name_match.group(1).strip()
            if not name:
                log.warning("Skipping tool call with empty name")
                continue
            args_match = _ARGS_RE.search(body)
            calls.append(ToolCall(name=name, args=_parse_args(args_match.group(1) if args_match else None)))
    except Exception as e:
        log.error("Error parsing tool calls", error=str(e))
        return []
    return calls


# ---------------------------------------------------------------------------
# Stripping
# ---------------------------------------------------------------------------
def _drop_stray_fences(text: str) -> str:
    """Remove empty fenced blocks and ``tool_code`` fences, pairing fences in order."""
    positions = [m.start() for m in re.finditer("```", text)]
    if len(positions) < 2:
        return text

    out: list[str] = []
    cursor = 0
    for open_at, close_at in zip(positions[0::2], positions[1::2]):
        inner = text[open_at + 3 : close_at]
        language = _FENCE_LANG_RE.match(inner).group(0)
        body = inner[len(language) :]
        if language == RESERVED_FENCE_LANGUAGE or not body.strip():
            out.append(text[cursor:open_at])
            cursor = close_at + 3
    out.append(text[cursor:])
    return "".join(out)


def _indicator(match: re.Match[str]) -> str:
    name_match = _NAME_RE.search(match.group(1))
    name = name_match.group(1).strip() if name_match else ""
    return format_tool_indicator(name) if name else ""


def strip_tool_calls(text: str, preserve_indicators: bool = False) -> str:
    """Remove tool-call markup for display.

    Removing a fence can join the halves of a call, so calls and fences are
    removed together until the text stops changing.

    Args:
        text: Model output
        preserve_indicators: Replace each call with a short "Tool call: ..."
            marker instead of deleting it

    Returns:
        Whitespace-normalized text without any call markup
    """
    if not text:
        return ""

    replacement = _indicator if preserve_indicators else ""
    previous = None
    while previous != text:
        previous = text
        text = TOOL_CALL_RE.sub(replacement, text)
        text = _drop_stray_fences(text)
        text = _BLANK_RUN_RE.sub("\n\n", text)
        text = text.strip()
    return text
