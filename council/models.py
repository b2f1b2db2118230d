"""Dataclasses for the discussion pipeline. No logic beyond tiny helpers."""

from dataclasses import dataclass, field

Scorecard = dict[str, float | int | None]


@dataclass(frozen=True)
class ResourceUsage:
    input_units: int = 0
    output_units: int = 0
    cost: float = 0.0

    def __add__(self, other: "ResourceUsage") -> "ResourceUsage":
        return ResourceUsage(
            input_units=self.input_units + other.input_units,
            output_units=self.output_units + other.output_units,
            cost=self.cost + other.cost,
        )


@dataclass(frozen=True)
class WorkerResult:
    summary: str
    details: str = ""
    scorecard: Scorecard = field(default_factory=dict)
    concerns: tuple[str, ...] = ()
    resource_usage: ResourceUsage = field(default_factory=ResourceUsage)
    confidence_score: float = 0.0   # 0-100, worker's self-reported clarity
    refinement_count: int = 1
    # Stamped by the round executor
    worker_id: str = ""
    role_key: str = ""
    round_index: int = 0


@dataclass(frozen=True)
class WorkerFailure:
    worker_id: str
    round_index: int
    reason: str


@dataclass(frozen=True)
class ConvergenceResult:
    score: float
    converged: bool
    content_similarity: float = 0.0
    metric_stability: float = 1.0


@dataclass(frozen=True)
class TeamConcern:
    worker_id: str
    role_key: str
    concern: str


@dataclass(frozen=True)
class ConversationMessage:
    round_index: int
    worker_id: str
    role_key: str
    message: str
    concerns: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiffContext:
    diff: str
    files_changed: tuple[str, ...] = ()
    commit_hash: str | None = None
    developer_overview: str | None = None


@dataclass(frozen=True)
class EvalContext:
    diff: DiffContext
    round_index: int
    max_rounds: int
    is_final_round: bool
    round_label: str
    previous_results: tuple[WorkerResult, ...] = ()
    concerns: tuple[TeamConcern, ...] = ()
    conversation_history: tuple[ConversationMessage, ...] = ()


@dataclass(frozen=True)
class RoundRecord:
    round_index: int
    results: tuple[WorkerResult, ...]
    failures: tuple[WorkerFailure, ...]
    aggregated_scorecard: Scorecard
    convergence: ConvergenceResult
    resource_usage: ResourceUsage = field(default_factory=ResourceUsage)


@dataclass(frozen=True)
class ProgressUpdate:
    round_index: int
    max_rounds: int
    results_count: int
    aggregated_scorecard: Scorecard
    convergence: ConvergenceResult
    failures: tuple[str, ...] = ()


@dataclass
class EvaluationResult:
    history: list[RoundRecord]
    final_scorecard: Scorecard
    converged: bool
    convergence_score: float
    total_resource_usage: ResourceUsage
    excluded_workers: set[str] = field(default_factory=set)

    @property
    def results(self) -> list[WorkerResult]:
        """Every valid worker result across all rounds, in history order."""
        return [r for record in self.history for r in record.results]

    @property
    def rounds_run(self) -> int:
        return len(self.history)
