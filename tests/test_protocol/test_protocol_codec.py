from seqthink.protocol import (
    decode_tool_calls,
    encode_instruction,
    format_progress_marker,
    format_tool_indicator,
    strip_tool_calls,
)
from seqthink.tools.registry import ToolDescriptor


def _call(name: str, args: str) -> str:
    return f"<use_tool>\n<name>{name}</name>\n<args>{args}</args>\n</use_tool>"


def test_decode_single_call_with_json_args():
    text = "Let me look.\n" + _call("localSearch", '{"query": "piano", "salientTerms": ["piano"]}')

    calls = decode_tool_calls(text)

    assert len(calls) == 1
    assert calls[0].name == "localSearch"
    assert calls[0].args == {"query": "piano", "salientTerms": ["piano"]}


def test_decode_multiple_calls_in_document_order():
    text = (
        "First\n"
        + _call("localSearch", '{"query": "a"}')
        + "\nthen\n"
        + _call("webSearch", '{"query": "b"}')
    )

    calls = decode_tool_calls(text)

    assert [c.name for c in calls] == ["localSearch", "webSearch"]
    assert calls[1].args == {"query": "b"}


def test_decode_invalid_json_falls_back_to_raw():
    calls = decode_tool_calls(_call("webSearch", "query: piano"))

    assert calls[0].args == {"raw": "query: piano"}


def test_decode_non_object_json_falls_back_to_raw():
    calls = decode_tool_calls(_call("webSearch", '["piano"]'))

    assert calls[0].args == {"raw": '["piano"]'}


def test_decode_missing_or_empty_args_gives_empty_dict():
    no_args = "<use_tool><name>getCurrentTime</name></use_tool>"
    empty_args = _call("getCurrentTime", "   ")

    assert decode_tool_calls(no_args)[0].args == {}
    assert decode_tool_calls(empty_args)[0].args == {}


def test_decode_skips_calls_with_empty_or_missing_name():
    text = (
        _call("   ", '{"query": "x"}')
        + "<use_tool><args>{}</args></use_tool>"
        + _call("webSearch", '{"query": "y"}')
    )

    calls = decode_tool_calls(text)

    assert [c.name for c in calls] == ["webSearch"]


def test_decode_plain_text_returns_empty_list():
    assert decode_tool_calls("Just an answer.") == []
    assert decode_tool_calls("") == []


def test_decode_ignores_unterminated_call():
    assert decode_tool_calls("<use_tool><name>webSearch</name>") == []


def test_strip_removes_all_decoded_calls():
    text = (
        "Searching your notes.\n\n"
        + _call("localSearch", '{"query": "a"}')
        + "\n\n\n\nAnd the web.\n"
        + _call("webSearch", "not json")
    )

    stripped = strip_tool_calls(text)

    assert "<use_tool>" not in stripped
    assert decode_tool_calls(stripped) == []
    assert stripped == "Searching your notes.\n\nAnd the web."


def test_strip_is_idempotent():
    text = (
        "Intro\n```\n```\n"
        + _call("localSearch", "{}")
        + "\n```tool_code\nprint('x')\n```\n\n\n\nOutro  "
    )

    once = strip_tool_calls(text)

    assert strip_tool_calls(once) == once
    assert once == "Intro\n\nOutro"


def test_strip_removes_call_joined_by_dropping_an_empty_fence():
    text = "<use_tool``````><name>a</name></use_tool>"

    once = strip_tool_calls(text)

    assert once == ""
    assert strip_tool_calls(once) == once
    assert decode_tool_calls(once) == []


def test_strip_keeps_real_code_blocks():
    text = "Here:\n```python\nprint('hi')\n```\nDone"

    assert strip_tool_calls(text) == text


def test_strip_does_not_merge_neighbouring_code_blocks():
    text = "```python\na = 1\n```\nmiddle\n```python\nb = 2\n```"

    assert strip_tool_calls(text) == text


def test_strip_with_indicators():
    text = "Checking.\n" + _call("webSearch", '{"query": "x"}')

    stripped = strip_tool_calls(text, preserve_indicators=True)

    assert stripped == "Checking.\n*Tool call: web search*"
    assert stripped == strip_tool_calls(stripped, preserve_indicators=True)


def test_strip_empty_text():
    assert strip_tool_calls("") == ""


def test_indicator_and_progress_marker_fall_back_to_raw_name():
    assert format_tool_indicator("customTool") == "*Tool call: customTool*"
    assert format_progress_marker("localSearch") == "🔍 *Calling vault search...*"
    assert format_progress_marker("customTool") == "🔧 *Calling customTool...*"


def test_encode_lists_tools_and_marks_arguments():
    descriptors = [
        ToolDescriptor(
            name="localSearch",
            description="Search the vault",
            argument_schema={"query": "Search text", "salientTerms": "Key terms"},
            required=("query", "salientTerms"),
            example_args={"query": "piano", "salientTerms": ["piano"]},
        ),
        ToolDescriptor(
            name="getCurrentTime",
            description="Current time",
            argument_schema={"timezone": "IANA name"},
        ),
    ]

    text = encode_instruction(descriptors)

    assert "<use_tool>" in text
    assert "- localSearch: Search the vault" in text
    assert "  - query (required): Search text" in text
    assert "  - timezone (optional): IANA name" in text
    assert "For localSearch:" in text
    assert "For getCurrentTime:" not in text
    assert 'CRITICAL: For localSearch, you MUST always provide both "query" and "salientTerms".' in text
    assert "\n\n\n" not in text


def test_encode_is_deterministic():
    descriptors = [ToolDescriptor(name="webSearch", description="Web", argument_schema={"query": "q"})]

    assert encode_instruction(descriptors) == encode_instruction(list(descriptors))


def test_encode_without_tools():
    text = encode_instruction([])

    assert "No tools are currently available." in text
    assert "Important Tool Usage Examples" not in text


def test_encoded_example_decodes_back():
    descriptor = ToolDescriptor(
        name="webSearch",
        description="Web",
        argument_schema={"query": "q"},
        required=("query",),
        example_args={"query": "piano practice"},
    )

    calls = decode_tool_calls(encode_instruction([descriptor]))

    assert any(c.name == "webSearch" and c.args == {"query": "piano practice"} for c in calls)
