"""commit-genie CLI: Typer + Rich terminal interface.

Commands: generate, models list, config show.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from commitgenie import __version__
from commitgenie.cancellation import CancellationToken
from commitgenie.errors import Cancelled, GenieError
from commitgenie.events import StageEvent, StageEventEmitter, StageEventType
from commitgenie.orchestrator import run_pipeline
from commitgenie.providers.registry import load_models, load_pipeline_config
from commitgenie.schemas.commit import DiffRecord
from commitgenie.schemas.pipeline import PipelineInputs

console = Console()
err_console = Console(stderr=True)

_DIFFS_ADAPTER = TypeAdapter(list[DiffRecord])

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="genie",
    help="Generate Conventional Commits messages from staged diffs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

models_app = typer.Typer(
    name="models",
    help="Inspect the model registry.",
    no_args_is_help=True,
)
app.add_typer(models_app, name="models")

config_app = typer.Typer(
    name="config",
    help="Show pipeline configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"genie {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Generate Conventional Commits messages from diffs."""


# ── Helpers ──────────────────────────────────────────────────────

def _load_registry():
    """Load the model registry, exit on error."""
    try:
        return load_models()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error loading models:[/red] {e}")
        raise typer.Exit(1) from None


def _load_config():
    """Load pipeline config, exit on error."""
    try:
        return load_pipeline_config()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _load_diffs(path: Path) -> list[DiffRecord]:
    """Read a JSON array of diff records, exit on error."""
    try:
        return _DIFFS_ADAPTER.validate_json(path.read_bytes())
    except OSError as e:
        err_console.print(f"[red]Cannot read diffs:[/red] {e}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        err_console.print(f"[red]Invalid diffs file:[/red] {e.error_count()} errors")
        err_console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(1) from None


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    else:
        logging.basicConfig(level=logging.WARNING)


def _progress_listener(event: StageEvent) -> None:
    """Print one dim line per stage event."""
    if event.type == StageEventType.SUMMARIZE_PROGRESS:
        data = event.data
        err_console.print(
            f"[dim]  summarized {data.get('current')}/{data.get('total')}: "
            f"{data.get('file')}[/dim]"
        )
    elif event.type != StageEventType.DONE:
        err_console.print(f"[dim]▸ {event.type.value}[/dim]")


async def _generate(inputs: PipelineInputs, config, emitter: StageEventEmitter):
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        # Windows event loops: Ctrl+C falls back to KeyboardInterrupt
        pass
    try:
        return await run_pipeline(inputs, config=config, emitter=emitter, cancel_token=token)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


# ── genie generate ───────────────────────────────────────────────

@app.command()
def generate(
    diffs_file: Path = typer.Argument(
        ..., help="JSON array of {fileName, status, rawDiff} records", exists=True,
    ),
    language: str = typer.Option(
        "", "--language", "-l", help="Target language for the narrative (e.g. zh, de)",
    ),
    template: Path | None = typer.Option(
        None, "--template", "-t", help="File holding a commit message template", exists=True,
    ),
    checklist: Path | None = typer.Option(
        None, "--checklist", help="File holding custom validation rules", exists=True,
    ),
    context: str = typer.Option(
        "", "--context", help="Short description of the repository",
    ),
    model: str = typer.Option("", "--model", "-m", help="Model registry key"),
    max_parallel: int | None = typer.Option(
        None, "--max-parallel", help="Summarizer workers (clamped to 4-8)",
    ),
    single_shot: bool = typer.Option(
        False, "--single-shot", help="Use one model call instead of the chain",
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print the full result as JSON",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Generate a commit message for the diffs in DIFFS_FILE."""
    _setup_logging(verbose)

    config = _load_config()
    updates: dict = {}
    if model:
        updates["model"] = model
    if max_parallel is not None:
        updates["max_parallel"] = max_parallel
    if single_shot:
        updates["chain_enabled"] = False
    if language:
        updates["target_language"] = language
    if updates:
        config = config.model_copy(update=updates)

    inputs = PipelineInputs(
        diffs=_load_diffs(diffs_file),
        user_template=template.read_text(encoding="utf-8") if template else "",
        checklist=checklist.read_text(encoding="utf-8") if checklist else "",
        repo_context=context,
    )

    emitter = StageEventEmitter()
    if not as_json:
        emitter.add_listener(_progress_listener)

    try:
        result = asyncio.run(_generate(inputs, config, emitter))
    except (Cancelled, KeyboardInterrupt):
        err_console.print("[yellow]Commit message generation was cancelled.[/yellow]")
        raise typer.Exit(1) from None
    except GenieError as e:
        err_console.print(f"[red]Commit message generation failed:[/red] {e}")
        raise typer.Exit(1) from None
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if as_json:
        console.print_json(result.model_dump_json())
        return

    console.print(Panel(result.commit_message, title="Commit message", expand=False))
    footer = (
        f"{result.total_tokens:,} tokens · ${result.total_cost:.4f} · "
        f"{result.duration_seconds:.1f}s"
    )
    console.print(f"[dim]{footer}[/dim]")
    if result.degraded:
        err_console.print(
            f"[yellow]Degraded stages:[/yellow] {', '.join(result.degraded_stages)}"
        )


# ── genie models ─────────────────────────────────────────────────

@models_app.command("list")
def models_list() -> None:
    """Show all registered models as a table."""
    registry = _load_registry()

    table = Table(title="Registered Models", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Display Name")
    table.add_column("Provider", style="dim")
    table.add_column("Context", justify="right")
    table.add_column("Structured", justify="center")
    table.add_column("Input $/M", justify="right")
    table.add_column("Output $/M", justify="right")

    for key, cfg in registry.items():
        table.add_row(
            key,
            cfg.display_name,
            cfg.provider,
            f"{cfg.context_window:,}",
            "yes" if cfg.supports_structured else "no",
            f"${cfg.cost_input:.2f}",
            f"${cfg.cost_output:.2f}",
        )

    console.print(table)
    console.print(f"\n[dim]{len(registry)} models registered[/dim]")


# ── genie config ─────────────────────────────────────────────────

@config_app.command("show")
def config_show(
    as_json: bool = typer.Option(False, "--json", help="Print the config as JSON"),
) -> None:
    """Show current pipeline configuration."""
    config = _load_config()

    if as_json:
        console.print_json(json.dumps(config.model_dump()))
        return

    table = Table(title="Pipeline Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Model", config.model or "(first registered)")
    table.add_row("Chain Enabled", str(config.chain_enabled))
    table.add_row("Max Parallel", str(config.max_parallel))
    table.add_row("Max Retries", str(config.max_retries))
    table.add_row("Temperature", f"{config.temperature:.1f}")
    table.add_row("Default Timeout", f"{config.default_timeout}s")
    table.add_row("Target Language", config.target_language or "(none)")
    table.add_row("Header Max Length", str(config.strict_header_max_length))
    table.add_row("Latin Margin", str(config.latin_margin))
    table.add_row("Min Chinese Ideographs", str(config.zh_min_ideographs))

    console.print(table)
