"""Discussion controller: drives rounds until the panel converges or runs out of rounds.

Round flow:
    AWAITING_ROUND -> ROUND_IN_PROGRESS -> DECIDING -> (AWAITING_ROUND | DONE)

Round 0 is an independent first analysis. Later rounds hand every worker its
peers' previous results and concerns so it can refine its scores. A worker
whose scorecard comes back unchanged has confirmed its assessment and sits
out the remaining rounds.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from council.aggregator import aggregate
from council.convergence import detect
from council.errors import ConfigurationError
from council.executor import run_round
from council.metrics import MetricRegistry
from council.models import (
    DiffContext,
    EvalContext,
    EvaluationResult,
    ProgressUpdate,
    RoundRecord,
)
from council.opt_out import newly_stable
from council.state import (
    DiscussionPhase,
    DiscussionState,
    append_conversation,
    append_history,
    merge_aggregate,
    replace_concerns,
    replace_current_round_results,
    sum_resource_usage,
    union_excluded_workers,
)
from council.weights import WeightTable
from council.workers.base import Worker

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressUpdate], None]
CheckpointSink = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class DiscussionConfig:
    max_rounds: int = 3
    min_rounds: int = 2
    convergence_threshold: float = 0.85
    worker_timeout_sec: float | None = 300.0

    def validate(self) -> None:
        """Raise ConfigurationError naming the first violated setting."""
        if self.max_rounds < 1:
            raise ConfigurationError("max_rounds", f"must be at least 1, got {self.max_rounds}")
        if self.min_rounds < 1:
            raise ConfigurationError("min_rounds", f"must be at least 1, got {self.min_rounds}")
        if self.min_rounds > self.max_rounds:
            raise ConfigurationError(
                "min_rounds",
                f"min_rounds ({self.min_rounds}) must not exceed max_rounds ({self.max_rounds})",
            )
        if not 0.0 <= self.convergence_threshold <= 1.0:
            raise ConfigurationError(
                "convergence_threshold", f"must be within [0, 1], got {self.convergence_threshold}"
            )
        if self.worker_timeout_sec is not None and self.worker_timeout_sec <= 0:
            raise ConfigurationError(
                "worker_timeout_sec", f"must be positive when set, got {self.worker_timeout_sec}"
            )


def round_label(round_index: int, max_rounds: int) -> str:
    if round_index == 0:
        return "Initial Analysis"
    if round_index == max_rounds - 1:
        return "Final Review"
    return "Team Discussion"


def should_stop(state: DiscussionState, completed_index: int) -> bool:
    """Stop on convergence once min_rounds have run, or when out of rounds."""
    if state.converged and completed_index >= state.min_rounds - 1:
        logger.info(
            "Stopping at round %d/%d due to convergence (min_rounds=%d)",
            completed_index + 1, state.max_rounds, state.min_rounds,
        )
        return True
    return state.round_index >= state.max_rounds


class DiscussionController:
    """Runs one evaluation. Create a new controller per diff; never share one."""

    def __init__(
        self,
        workers: Sequence[Worker],
        registry: MetricRegistry,
        weights: WeightTable,
        config: DiscussionConfig = DiscussionConfig(),
        on_round_complete: ProgressSink | None = None,
        on_checkpoint: CheckpointSink | None = None,
    ) -> None:
        config.validate()
        if not workers:
            raise ConfigurationError("workers", "worker roster is empty")
        ids = [w.worker_id() for w in workers]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError("workers", f"duplicate worker ids: {', '.join(duplicates)}")

        self._workers = list(workers)
        self._registry = registry
        self._weights = weights
        self._config = config
        self._on_round_complete = on_round_complete
        self._on_checkpoint = on_checkpoint
        self._state: DiscussionState | None = None

    @property
    def phase(self) -> DiscussionPhase | None:
        return self._state.phase if self._state is not None else None

    @property
    def state(self) -> DiscussionState | None:
        return self._state

    async def evaluate(self, diff: DiffContext) -> EvaluationResult:
        """Evaluate a diff from round 0."""
        state = DiscussionState(
            diff=diff,
            max_rounds=self._config.max_rounds,
            min_rounds=self._config.min_rounds,
            convergence_threshold=self._config.convergence_threshold,
        )
        return await self._run(state)

    async def resume(self, saved_state: Mapping[str, Any]) -> EvaluationResult:
        """Continue an evaluation from DiscussionState.to_dict() output."""
        state = DiscussionState.from_dict(saved_state)
        DiscussionConfig(
            max_rounds=state.max_rounds,
            min_rounds=state.min_rounds,
            convergence_threshold=state.convergence_threshold,
            worker_timeout_sec=self._config.worker_timeout_sec,
        ).validate()
        if state.round_index > state.max_rounds:
            raise ConfigurationError(
                "round_index",
                f"saved round_index {state.round_index} exceeds max_rounds {state.max_rounds}",
            )
        if state.phase in (DiscussionPhase.ROUND_IN_PROGRESS, DiscussionPhase.DECIDING):
            # The checkpoint was taken mid-round; that round never completed.
            state.phase = DiscussionPhase.AWAITING_ROUND
        logger.info("Resuming evaluation at round %d/%d", state.round_index + 1, state.max_rounds)
        return await self._run(state)

    async def _run(self, state: DiscussionState) -> EvaluationResult:
        self._state = state
        if state.round_index >= state.max_rounds:
            state.phase = DiscussionPhase.DONE

        while state.phase is not DiscussionPhase.DONE:
            completed_index = await self._run_one_round(state)
            state.phase = DiscussionPhase.DECIDING
            if should_stop(state, completed_index):
                state.phase = DiscussionPhase.DONE
            elif self._all_opted_out(state):
                logger.info("Every worker confirmed its assessment, stopping after round %d", completed_index + 1)
                state.phase = DiscussionPhase.DONE
            else:
                state.phase = DiscussionPhase.AWAITING_ROUND
            if self._on_checkpoint:
                self._on_checkpoint(state.to_dict())

        logger.info(
            "Evaluation complete: %d round(s), %d result(s), converged=%s",
            len(state.history), sum(len(r.results) for r in state.history), state.converged,
        )
        return EvaluationResult(
            history=list(state.history),
            final_scorecard=dict(state.running_aggregate),
            converged=state.converged,
            convergence_score=state.convergence_score,
            total_resource_usage=state.total_resource_usage,
            excluded_workers=set(state.excluded_workers),
        )

    def _all_opted_out(self, state: DiscussionState) -> bool:
        return all(w.worker_id() in state.excluded_workers for w in self._workers)

    def _eligible(self, context: EvalContext, excluded: set[str]) -> list[Worker]:
        eligible: list[Worker] = []
        for worker in self._workers:
            worker_id = worker.worker_id()
            if worker_id in excluded:
                continue
            try:
                capable = worker.can_execute(context)
            except Exception as exc:
                logger.warning("Worker %s can_execute check failed, skipping: %s", worker_id, exc)
                continue
            if capable:
                eligible.append(worker)
            else:
                logger.debug("Worker %s declined round %d", worker_id, context.round_index + 1)
        return eligible

    async def _run_one_round(self, state: DiscussionState) -> int:
        """Execute the round at state.round_index and fold its outcome into the state."""
        index = state.round_index
        context = EvalContext(
            diff=state.diff,
            round_index=index,
            max_rounds=state.max_rounds,
            is_final_round=index == state.max_rounds - 1,
            round_label=round_label(index, state.max_rounds),
            previous_results=tuple(state.previous_round_results),
            concerns=tuple(state.concerns),
            conversation_history=tuple(state.conversation),
        )

        state.phase = DiscussionPhase.ROUND_IN_PROGRESS
        eligible = self._eligible(context, state.excluded_workers)
        logger.info(
            "Round %d/%d (%s): %d eligible worker(s), %d opted out",
            index + 1, state.max_rounds, context.round_label, len(eligible), len(state.excluded_workers),
        )

        outcome = await run_round(eligible, context, self._registry, self._config.worker_timeout_sec)
        if not outcome.results:
            logger.warning("No valid results in round %d", index + 1)

        round_scorecard = aggregate(outcome.results, self._weights, self._registry)
        merge_aggregate(state, round_scorecard)

        convergence = detect(outcome.results, state.previous_round_results, state.convergence_threshold)
        state.converged = convergence.converged
        state.convergence_score = convergence.score
        if convergence.converged:
            logger.info("Convergence detected: %.1f%% similarity", convergence.score * 100)

        union_excluded_workers(
            state, newly_stable(outcome.results, state.previous_round_results, self._registry)
        )

        round_usage = sum_resource_usage(state, outcome.results)
        record = RoundRecord(
            round_index=index,
            results=tuple(outcome.results),
            failures=tuple(outcome.failures),
            aggregated_scorecard=round_scorecard,
            convergence=convergence,
            resource_usage=round_usage,
        )
        append_history(state, record)
        replace_current_round_results(state, outcome.results)
        replace_concerns(state, outcome.results)
        append_conversation(state, outcome.results)
        state.round_index = index + 1

        if self._on_round_complete:
            self._on_round_complete(
                ProgressUpdate(
                    round_index=index,
                    max_rounds=state.max_rounds,
                    results_count=len(outcome.results),
                    aggregated_scorecard=dict(round_scorecard),
                    convergence=convergence,
                    failures=tuple(outcome.failed_ids),
                )
            )
        return index


async def evaluate(
    diff: DiffContext,
    workers: Sequence[Worker],
    registry: MetricRegistry | None = None,
    weights: WeightTable | None = None,
    max_rounds: int = 3,
    min_rounds: int = 2,
    convergence_threshold: float = 0.85,
    worker_timeout_sec: float | None = 300.0,
    on_round_complete: ProgressSink | None = None,
) -> EvaluationResult:
    """Run a full multi-round evaluation of a diff.

    Raises:
        ConfigurationError: If the round limits or roster are invalid. Raised
            before any worker is invoked.
    """
    controller = DiscussionController(
        workers,
        registry if registry is not None else MetricRegistry(),
        weights if weights is not None else WeightTable(),
        DiscussionConfig(max_rounds, min_rounds, convergence_threshold, worker_timeout_sec),
        on_round_complete=on_round_complete,
    )
    return await controller.evaluate(diff)


async def resume(
    saved_state: Mapping[str, Any],
    workers: Sequence[Worker],
    registry: MetricRegistry | None = None,
    weights: WeightTable | None = None,
    worker_timeout_sec: float | None = 300.0,
    on_round_complete: ProgressSink | None = None,
) -> EvaluationResult:
    """Continue a checkpointed evaluation with the given roster."""
    controller = DiscussionController(
        workers,
        registry if registry is not None else MetricRegistry(),
        weights if weights is not None else WeightTable(),
        DiscussionConfig(
            max_rounds=int(saved_state["max_rounds"]),
            min_rounds=int(saved_state["min_rounds"]),
            convergence_threshold=float(saved_state["convergence_threshold"]),
            worker_timeout_sec=worker_timeout_sec,
        ),
        on_round_complete=on_round_complete,
    )
    return await controller.resume(saved_state)
