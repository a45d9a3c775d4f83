"""Main entry point for LLoms."""

import asyncio

import typer

from lloms import __version__
from lloms.cli import TerminalUI
from lloms.config import Config
from lloms.exceptions import ConfigurationError, LlomsError
from lloms.logging import configure_logging, get_logger
from lloms.session import run_chat

log = get_logger(__name__)

app = typer.Typer(help="LLoms - a minimal chat client for Ollama with MCP tools", no_args_is_help=False)


def main(config: str = "", verbose: bool = False) -> int:
    """Start an interactive LLoms session and return the process exit code."""
    forced_level = "DEBUG" if verbose else None
    configure_logging(level=forced_level)

    ui = TerminalUI()
    try:
        cfg = Config.load(config or None)
    except ConfigurationError as e:
        log.error("Failed to load config", error=str(e))
        ui.print_error(str(e))
        return 1

    configure_logging(cfg.logging, level=forced_level)

    try:
        asyncio.run(run_chat(cfg, ui))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        ui.print_goodbye()
    except LlomsError as e:
        log.error("Session aborted", error=str(e))
        ui.print_error(str(e))
        return 1
    return 0


@app.callback(invoke_without_command=True)
def _default(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        raise typer.Exit(main())


@app.command()
def run(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start the interactive chat."""
    raise typer.Exit(main(config, verbose))


@app.command()
def version() -> None:
    """Show version information."""
    print(f"LLoms v{__version__}")


if __name__ == "__main__":
    app()
