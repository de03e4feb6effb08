"""Command line entry point for seqthink."""

import asyncio
import signal
import sys
from pathlib import Path

import typer

from seqthink.abort import AbortReason, AbortSignal
from seqthink.agent import SequentialAgent
from seqthink.config import Config, get_config, set_config
from seqthink.exceptions import ConfigurationError, FallbackError, LLMError
from seqthink.llm import get_chat_model, set_chat_model
from seqthink.logging import configure_logging, get_logger
from seqthink.memory import InMemoryChatMemory
from seqthink.runner import AgentResult, describe_error
from seqthink.tools import GetCurrentTimeTool, ToolRegistry

log = get_logger(__name__)

app = typer.Typer(help="seqthink - a tool-using chat agent that thinks in steps")


class LivePrinter:
    """Render replace-the-whole-text updates on an append-only terminal."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout
        self._shown = ""

    def __call__(self, text: str) -> None:
        if text == self._shown:
            return
        if text.startswith(self._shown):
            self._stream.write(text[len(self._shown):])
        elif text:
            # Earlier output was rewritten (e.g. a tool call got stripped).
            self._stream.write("\n" + text)
        self._stream.flush()
        self._shown = text

    def reset(self) -> None:
        self._shown = ""


def _print_result(result: AgentResult) -> None:
    if result.is_incomplete:
        typer.secho("\n[stopped after the maximum number of steps]", fg=typer.colors.YELLOW)
    if result.sources:
        typer.secho("\nSources:", fg=typer.colors.CYAN)
        for source in result.sources:
            typer.echo(f"  - {source.title} ({source.score:.3f})")
    typer.echo("")


async def run_interactive() -> None:
    """Run the interactive chat loop."""
    cfg = get_config()
    registry = ToolRegistry([GetCurrentTimeTool()])
    memory = InMemoryChatMemory(max_turns=cfg.memory.max_turns)
    chat_model = get_chat_model()
    agent = SequentialAgent(chat_model=chat_model, tools=registry, memory=memory, config=cfg.agent)
    printer = LivePrinter()
    loop = asyncio.get_running_loop()

    typer.secho(
        f"seqthink ({cfg.model.provider}:{cfg.model.model}) - '/new' resets, 'exit' quits, Ctrl+C stops a reply.",
        fg=typer.colors.YELLOW,
    )
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\nYou: ")).strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not user_input:
                continue
            if user_input.lower() in {"exit", "quit"}:
                break
            if user_input == "/new":
                memory.clear()
                typer.secho("Started a new conversation.", fg=typer.colors.YELLOW)
                continue

            abort = AbortSignal()
            try:
                loop.add_signal_handler(signal.SIGINT, abort.abort, AbortReason.USER_STOPPED)
            except (NotImplementedError, RuntimeError):
                pass

            printer.reset()
            typer.echo("Assistant: ", nl=False)
            try:
                result = await agent.run(user_input, abort=abort, on_update=printer)
                _print_result(result)
            except (FallbackError, LLMError) as e:
                typer.secho(f"\n{describe_error(e)}", fg=typer.colors.RED, err=True)
            finally:
                try:
                    loop.remove_signal_handler(signal.SIGINT)
                except (NotImplementedError, RuntimeError):
                    pass
    finally:
        await chat_model.close()
        set_chat_model(None)


@app.command()
def chat(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    provider: str = typer.Option("", "-p", "--provider", help="Override provider"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start an interactive session."""
    try:
        cfg = Config.from_yaml(Path(config)) if config else Config.load()
    except ConfigurationError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e

    if model:
        cfg.model.model = model
    if provider:
        cfg.model.provider = provider
    if verbose:
        cfg.logging.level = "DEBUG"

    set_config(cfg)
    configure_logging()

    try:
        asyncio.run(run_interactive())
    except KeyboardInterrupt:
        log.info("Shutting down...")
    except ValueError as e:
        log.error("Fatal error", error=str(e))
        raise typer.Exit(code=1) from e


@app.command()
def version() -> None:
    """Show version information."""
    from seqthink import __version__
    typer.echo(f"seqthink v{__version__}")


if __name__ == "__main__":
    app()
