"""Round executor: concurrent worker calls, failure isolation, result validation."""

import asyncio
import dataclasses
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from council.metrics import MetricRegistry
from council.models import EvalContext, ResourceUsage, WorkerFailure, WorkerResult
from council.workers.base import Worker, WorkerError

logger = logging.getLogger(__name__)


@dataclass
class RoundOutcome:
    results: list[WorkerResult] = field(default_factory=list)
    failures: list[WorkerFailure] = field(default_factory=list)

    @property
    def failed_ids(self) -> list[str]:
        return [f.worker_id for f in self.failures]


async def _call_worker(
    worker: Worker,
    context: EvalContext,
    timeout_sec: float | None,
) -> WorkerResult | WorkerFailure:
    """Call a single worker under an optional deadline.

    Never raises (except on cancellation). Returns WorkerFailure on error or timeout.
    """
    worker_id = worker.worker_id()
    round_num = context.round_index + 1
    try:
        if timeout_sec is None:
            return await worker.execute(context)
        return await asyncio.wait_for(worker.execute(context), timeout=timeout_sec)
    except asyncio.TimeoutError:
        logger.warning("Worker %s timed out after %ss in round %d", worker_id, timeout_sec, round_num)
        return WorkerFailure(worker_id, context.round_index, f"timed out after {timeout_sec}s")
    except WorkerError as exc:
        logger.warning("Worker %s failed in round %d: %s", worker_id, round_num, exc)
        return WorkerFailure(worker_id, context.round_index, str(exc))
    except Exception as exc:
        logger.warning("Worker %s unexpected failure in round %d: %s", worker_id, round_num, exc)
        return WorkerFailure(worker_id, context.round_index, f"unexpected error: {exc}")


def _invalid_reason(result: object, registry: MetricRegistry) -> str | None:
    """Return why a worker's return value is unusable, or None if it is valid."""
    if not isinstance(result, WorkerResult):
        return f"returned {type(result).__name__} instead of WorkerResult"
    if not isinstance(result.summary, str) or not result.summary.strip():
        return "empty summary"
    if not isinstance(result.scorecard, Mapping):
        return f"scorecard is {type(result.scorecard).__name__}, not a mapping"
    for name, value in result.scorecard.items():
        if name not in registry or value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"non-numeric value for {name}: {value!r}"
    violations = registry.null_violations(result.scorecard)
    if violations:
        return f"null value for required metric(s): {', '.join(violations)}"
    return None


async def run_round(
    workers: Sequence[Worker],
    context: EvalContext,
    registry: MetricRegistry,
    timeout_sec: float | None = None,
) -> RoundOutcome:
    """Run the eligible workers for one round concurrently.

    Args:
        workers: Workers already filtered for eligibility.
        context: Shared, read-only round context.
        registry: Metric registry used to validate and sanitize scorecards.
        timeout_sec: Optional per-worker deadline.

    Returns:
        RoundOutcome with the valid, sanitized results and one failure per
        worker that raised, timed out or returned an invalid result.
    """
    round_num = context.round_index + 1
    logger.info("Starting round %d with %d workers", round_num, len(workers))

    returned = await asyncio.gather(*(_call_worker(w, context, timeout_sec) for w in workers))

    outcome = RoundOutcome()
    for worker, value in zip(workers, returned):
        if isinstance(value, WorkerFailure):
            outcome.failures.append(value)
            continue
        reason = _invalid_reason(value, registry)
        if reason is not None:
            logger.warning(
                "Worker %s returned an invalid result in round %d: %s",
                worker.worker_id(), round_num, reason,
            )
            outcome.failures.append(WorkerFailure(worker.worker_id(), context.round_index, reason))
            continue
        outcome.results.append(
            dataclasses.replace(
                value,
                scorecard=registry.sanitize(value.scorecard),
                concerns=tuple(value.concerns or ()),
                resource_usage=value.resource_usage or ResourceUsage(),
                worker_id=worker.worker_id(),
                role_key=worker.role_key(),
                round_index=context.round_index,
            )
        )

    if outcome.failures:
        logger.warning(
            "%d worker(s) failed to return valid results in round %d",
            len(outcome.failures), round_num,
        )
    logger.info(
        "Round %d complete: %d/%d workers succeeded",
        round_num, len(outcome.results), len(workers),
    )
    return outcome
