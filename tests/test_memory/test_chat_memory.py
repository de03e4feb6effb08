from seqthink.memory import InMemoryChatMemory


def test_history_alternates_user_and_assistant():
    memory = InMemoryChatMemory()
    memory.save_context("hi", "hello")
    memory.save_context("how are you", "fine")

    history = memory.load_history()

    assert [(m.role, m.content) for m in history] == [
        ("user", "hi"),
        ("assistant", "hello"),
        ("user", "how are you"),
        ("assistant", "fine"),
    ]


def test_window_keeps_most_recent_turns():
    memory = InMemoryChatMemory(max_turns=2)
    for index in range(5):
        memory.save_context(f"q{index}", f"a{index}")

    assert len(memory) == 2
    assert [m.content for m in memory.load_history()] == ["q3", "a3", "q4", "a4"]


def test_clear():
    memory = InMemoryChatMemory()
    memory.save_context("q", "a")

    memory.clear()

    assert memory.load_history() == []
