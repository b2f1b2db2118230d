"""Rich console output for discussion rounds and the final scorecard."""

import logging

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council.metrics import MetricRegistry
from council.models import EvaluationResult, RoundRecord, Scorecard, WorkerResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def format_score(value: float | int | None) -> str:
    if value is None:
        return "-"
    return f"{value:.2f}"


def _summary_preview(result: WorkerResult, words: int = 50) -> str:
    """Return first N words of a result's summary."""
    all_words = result.summary.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def scorecard_table(scorecard: Scorecard, registry: MetricRegistry, title: str = "Scorecard") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Metric")
    table.add_column("Score", justify="right")
    for name in registry:
        label = registry.get(name).display_name or name
        table.add_row(label, format_score(scorecard.get(name)))
    return table


def print_round_summary(record: RoundRecord, max_rounds: int) -> None:
    """Print each worker's summary plus the round's convergence and usage."""
    console.print(Rule(f"[bold cyan]Round {record.round_index + 1}/{max_rounds} Summary[/bold cyan]"))
    for result in record.results:
        console.print(
            Panel(
                _summary_preview(result),
                title=f"[bold]{result.worker_id}[/bold] ({result.role_key})",
                subtitle=f"{result.confidence_score:.0f}% confidence",
                border_style="dim",
            )
        )
    for failure in record.failures:
        console.print(f"  [red]FAIL[/red] {failure.worker_id}: {failure.reason}")

    usage = record.resource_usage
    convergence = record.convergence
    marker = " [bold green](CONVERGED)[/bold green]" if convergence.converged else ""
    console.print(
        f"  Units: {usage.input_units:,} in / {usage.output_units:,} out | Cost: ${usage.cost:.4f}"
    )
    console.print(f"  Team convergence: {convergence.score * 100:.1f}%{marker}")


def print_evaluation(result: EvaluationResult, registry: MetricRegistry) -> None:
    """Print the final aggregated scorecard with run statistics."""
    console.print(Rule("[bold green]Council Scorecard[/bold green]"))
    usage = result.total_resource_usage
    console.print(
        Text(
            f"Rounds: {result.rounds_run} | "
            f"Results: {len(result.results)} | "
            f"Converged: {'yes' if result.converged else 'no'} ({result.convergence_score * 100:.1f}%) | "
            f"Cost: ${usage.cost:.4f}",
            style="dim",
        )
    )
    if result.excluded_workers:
        console.print(
            Text(f"Confirmed early: {', '.join(sorted(result.excluded_workers))}", style="dim")
        )
    console.print(scorecard_table(result.final_scorecard, registry, title="Final scorecard"))
