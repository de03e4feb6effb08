from seqthink.adapters import (
    ModelAdapter,
    ModelFamily,
    classify_model,
    create_adapter,
    message_requires_tools,
)


def test_classify_model_families():
    assert classify_model("gpt-4o-mini") == ModelFamily.GPT
    assert classify_model("Claude-3-5-Sonnet") == ModelFamily.CLAUDE
    assert classify_model("gemini-2.0-flash") == ModelFamily.GEMINI
    assert classify_model("deepseek-reasoner") == ModelFamily.REASONING
    assert classify_model("qwq-32b") == ModelFamily.REASONING
    assert classify_model("llama3.2") == ModelFamily.DEFAULT
    assert classify_model(None) == ModelFamily.DEFAULT


def test_classify_model_first_match_wins():
    assert classify_model("gpt-distilled-deepseek") == ModelFamily.GPT


def test_message_requires_tools():
    assert message_requires_tools("Can you find my notes about piano?")
    assert message_requires_tools("What TIME is it? current time please")
    assert not message_requires_tools("Tell me a joke")


def test_gpt_system_prompt_gets_reinforcement():
    adapter = ModelAdapter("gpt-4o", search_tool="localSearch")

    prompt = adapter.enhance_system_prompt("Base.", "TOOLS")

    assert prompt.startswith("Base.\n\nTOOLS\n\n")
    assert "CRITICAL FOR GPT MODELS" in prompt
    assert "<name>localSearch</name>" in prompt
    assert '"query": "piano learning"' in prompt


def test_reasoning_system_prompt_gets_channel_note():
    prompt = ModelAdapter("deepseek-reasoner").enhance_system_prompt("Base.", "TOOLS")

    assert "NOTE ON REASONING" in prompt


def test_default_family_prompt_is_unchanged():
    adapter = ModelAdapter("llama3.2")

    assert adapter.enhance_system_prompt("Base.", "TOOLS") == "Base.\n\nTOOLS"
    assert adapter.enhance_user_message("find my notes", True) == "find my notes"
    assert adapter.needs_special_handling() is False


def test_gpt_user_message_reminder_only_when_relevant():
    adapter = create_adapter("gpt-4o", search_tool="localSearch")

    enhanced = adapter.enhance_user_message("find my notes on piano", True)

    assert enhanced.startswith("find my notes on piano\n\n")
    assert "localSearch" in enhanced
    assert adapter.enhance_user_message("find my notes", False) == "find my notes"
    assert adapter.enhance_user_message("what time is it", True) == "what time is it"
    assert adapter.needs_special_handling() is True
