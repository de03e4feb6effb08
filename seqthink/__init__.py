"""seqthink - sequential tool-using agent loop for streaming chat models."""

__version__ = "0.1.0"

from seqthink.abort import AbortReason, AbortSignal
from seqthink.agent import SequentialAgent
from seqthink.config import Config
from seqthink.runner import AgentResult, LoopOutcome, SinglePassRunner, Source

__all__ = [
    "AbortReason",
    "AbortSignal",
    "AgentResult",
    "Config",
    "LoopOutcome",
    "SequentialAgent",
    "SinglePassRunner",
    "Source",
    "__version__",
]
