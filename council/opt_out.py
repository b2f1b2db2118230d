"""Opt-out tracking: workers whose scorecard stopped changing confirm their assessment."""

import logging
from collections.abc import Sequence

from council.metrics import MetricRegistry
from council.models import WorkerResult

logger = logging.getLogger(__name__)


def detect_stable(
    result: WorkerResult,
    previous: WorkerResult | None,
    registry: MetricRegistry,
) -> bool:
    """True iff every registered metric is identical to the worker's previous round.

    A missing metric and an explicit null are the same thing here. The first
    round never opts out.
    """
    if previous is None:
        return False
    return all(
        result.scorecard.get(metric) == previous.scorecard.get(metric)
        for metric in registry
    )


def newly_stable(
    results: Sequence[WorkerResult],
    previous_results: Sequence[WorkerResult],
    registry: MetricRegistry,
) -> set[str]:
    """Return the ids of workers whose scorecards match their previous round."""
    previous_by_worker = {r.worker_id: r for r in previous_results}
    stable: set[str] = set()
    for result in results:
        if detect_stable(result, previous_by_worker.get(result.worker_id), registry):
            logger.info(
                "%s (%s) confirmed assessment (stable metrics), will not participate in later rounds",
                result.worker_id, result.role_key,
            )
            stable.add(result.worker_id)
    return stable
