"""Model-family prompt adaptations for the sequential agent loop."""

from enum import Enum

from seqthink.instructions import InstructionLoader, get_instruction_loader


class ModelFamily(str, Enum):
    """Closed set of model families with distinct prompting needs."""

    GPT = "gpt"
    CLAUDE = "claude"
    GEMINI = "gemini"
    # Models that stream reasoning through a separate channel.
    REASONING = "reasoning"
    DEFAULT = "default"


# First match wins; anything unmatched is DEFAULT.
_FAMILY_MARKERS: tuple[tuple[str, ModelFamily], ...] = (
    ("gpt", ModelFamily.GPT),
    ("claude", ModelFamily.CLAUDE),
    ("gemini", ModelFamily.GEMINI),
    ("deepseek", ModelFamily.REASONING),
    ("qwq", ModelFamily.REASONING),
)

_TOOL_INDICATORS = (
    "find",
    "search",
    "look for",
    "look up",
    "my notes",
    "in my vault",
    "from my vault",
    "check the web",
    "search online",
    "from the internet",
    "current time",
    "what time",
    "timer",
    "youtube",
    "video",
    "transcript",
)

_SEARCH_HINTS = ("find", "search", "my notes")


def classify_model(model_name: str | None) -> ModelFamily:
    """Map a model identifier to exactly one family."""
    lowered = str(model_name or "").lower()
    for marker, family in _FAMILY_MARKERS:
        if marker in lowered:
            return family
    return ModelFamily.DEFAULT


def message_requires_tools(message: str) -> bool:
    """Keyword heuristic: does the request look like it needs a tool?"""
    lowered = (message or "").lower()
    return any(indicator in lowered for indicator in _TOOL_INDICATORS)


class ModelAdapter:
    """Prompt deltas for one model family."""

    def __init__(
        self,
        model_name: str,
        search_tool: str = "localSearch",
        loader: InstructionLoader | None = None,
    ):
        self.model_name = str(model_name or "").lower()
        self.family = classify_model(self.model_name)
        self.search_tool = search_tool
        self._loader = loader

    @property
    def loader(self) -> InstructionLoader:
        return self._loader or get_instruction_loader()

    def enhance_system_prompt(self, base_prompt: str, tool_instruction: str) -> str:
        """Combine the base prompt, the tool protocol section and family reinforcement."""
        sections = [base_prompt.strip(), tool_instruction.strip()]
        if self.family == ModelFamily.GPT:
            sections.append(self.loader.render("gpt_reinforcement.md", search_tool=self.search_tool))
        elif self.family == ModelFamily.REASONING:
            sections.append(self.loader.load("reasoning_channel.md"))
        return "\n\n".join(section for section in sections if section)

    def enhance_user_message(self, message: str, requires_tools: bool) -> str:
        if self.family != ModelFamily.GPT or not requires_tools:
            return message
        lowered = message.lower()
        if "<use_tool>" in lowered or not any(hint in lowered for hint in _SEARCH_HINTS):
            return message
        reminder = self.loader.render("user_tool_reminder.md", search_tool=self.search_tool)
        return f"{message}\n\n{reminder}"

    def needs_special_handling(self) -> bool:
        return self.family == ModelFamily.GPT


def create_adapter(model_name: str, search_tool: str = "localSearch") -> ModelAdapter:
    """Build the adapter for *model_name*."""
    return ModelAdapter(model_name, search_tool=search_tool)
