"""Click CLI: loads settings and a recorded panel, runs the discussion, prints the scorecard."""

import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from council.config.config_loader import AppConfig, load_config
from council.discussion import DiscussionConfig, DiscussionController
from council.errors import ConfigurationError
from council.models import DiffContext, EvaluationResult, ProgressUpdate
from council.output import print_evaluation, print_round_summary
from council.workers.replay import load_panel

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_DIFF_HEADER = re.compile(r"^diff --git a/(\S+) b/(\S+)", re.MULTILINE)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _files_from_diff(diff_text: str) -> list[str]:
    """Changed paths from `diff --git` headers, in first-seen order."""
    files: list[str] = []
    for _, new_path in _DIFF_HEADER.findall(diff_text):
        if new_path not in files:
            files.append(new_path)
    return files


def _effective_discussion(
    config: AppConfig,
    max_rounds: int | None,
    min_rounds: int | None,
    threshold: float | None,
    timeout: float | None,
) -> DiscussionConfig:
    """CLI flags win over settings.yaml."""
    base = config.discussion
    return DiscussionConfig(
        max_rounds=max_rounds if max_rounds is not None else base.max_rounds,
        min_rounds=min_rounds if min_rounds is not None else base.min_rounds,
        convergence_threshold=threshold if threshold is not None else base.convergence_threshold,
        worker_timeout_sec=timeout if timeout is not None else base.worker_timeout_sec,
    )


def _write_checkpoint(path: Path, state: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(state, sort_keys=False, allow_unicode=True), encoding="utf-8")
    logger.debug("Checkpoint written to %s", path)


async def _run(controller: DiscussionController, source: DiffContext | dict[str, Any]) -> EvaluationResult:
    """Evaluate a fresh diff, or resume from a loaded checkpoint."""
    if isinstance(source, DiffContext):
        return await controller.evaluate(source)
    return await controller.resume(source)


@click.command()
@click.argument("diff_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--panel", "panel_file", required=True, type=click.Path(exists=True, dir_okay=False),
              help="YAML file with the recorded reviewer panel")
@click.option("--files", default=None, help="Comma-separated changed files (default: parsed from the diff)")
@click.option("--max-rounds", default=None, type=int, help="Maximum discussion rounds (default: from config)")
@click.option("--min-rounds", default=None, type=int,
              help="Rounds that must run before convergence may stop early (default: from config)")
@click.option("--threshold", default=None, type=float, help="Convergence threshold 0-1 (default: from config)")
@click.option("--timeout", default=None, type=float, help="Per-worker timeout in seconds (default: from config)")
@click.option("--settings", "settings_path", default=None, type=click.Path(dir_okay=False),
              help="Alternative settings.yaml")
@click.option("--checkpoint", "checkpoint_path", default=None, type=click.Path(dir_okay=False),
              help="Write the discussion state here after every round")
@click.option("--resume", "resume_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Continue from a checkpoint file instead of starting a new evaluation")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    diff_file: str | None,
    panel_file: str,
    files: str | None,
    max_rounds: int | None,
    min_rounds: int | None,
    threshold: float | None,
    timeout: float | None,
    settings_path: str | None,
    checkpoint_path: str | None,
    resume_path: str | None,
    verbose: bool,
) -> None:
    """Diff Council -- multi-round reviewer panel scoring of a code change.

    \b
    Examples:
      council change.diff --panel panel.yaml
      council change.diff --panel panel.yaml --max-rounds 4 --min-rounds 2
      council change.diff --panel panel.yaml --checkpoint state.yaml
      council --panel panel.yaml --resume state.yaml
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path) if settings_path else None)
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    try:
        workers = load_panel(Path(panel_file))
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Panel error:[/bold red] {exc}")
        sys.exit(1)

    source: DiffContext | dict[str, Any]
    if resume_path:
        source = yaml.safe_load(Path(resume_path).read_text(encoding="utf-8"))
    elif diff_file:
        diff_text = Path(diff_file).read_text(encoding="utf-8")
        changed = [f.strip() for f in files.split(",") if f.strip()] if files else _files_from_diff(diff_text)
        source = DiffContext(diff=diff_text, files_changed=tuple(changed))
    else:
        console.print("[bold red]Error:[/bold red] Provide a DIFF_FILE argument or --resume.")
        sys.exit(1)

    discussion = _effective_discussion(config, max_rounds, min_rounds, threshold, timeout)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:

        def on_round_complete(update: ProgressUpdate) -> None:
            progress.print(
                f"[green]OK[/green] Round {update.round_index + 1}/{update.max_rounds} complete "
                f"({update.results_count} results, convergence {update.convergence.score * 100:.1f}%)"
            )

        def on_checkpoint(state: dict[str, Any]) -> None:
            if checkpoint_path:
                _write_checkpoint(Path(checkpoint_path), state)

        try:
            controller = DiscussionController(
                workers,
                config.registry,
                config.weights,
                discussion,
                on_round_complete=on_round_complete,
                on_checkpoint=on_checkpoint,
            )
        except ConfigurationError as exc:
            console.print(f"[bold red]Config error:[/bold red] {exc}")
            sys.exit(1)

        progress.add_task("Running discussion rounds...", total=None)
        try:
            result = asyncio.run(_run(controller, source))
        except ConfigurationError as exc:
            console.print(f"[bold red]Config error:[/bold red] {exc}")
            sys.exit(1)

    total_rounds = controller.state.max_rounds if controller.state else discussion.max_rounds
    for record in result.history:
        print_round_summary(record, total_rounds)
    print_evaluation(result, config.registry)


if __name__ == "__main__":
    main()
