"""Weighted aggregation of worker scorecards into one scorecard per round."""

import logging
from collections.abc import Sequence

from council.metrics import MetricRegistry
from council.models import Scorecard, WorkerResult
from council.weights import WeightTable

logger = logging.getLogger(__name__)


def weighted_average(
    contributions: Sequence[tuple[str, float]],
    metric: str,
    weights: WeightTable,
) -> float | None:
    """Weighted mean of (role_key, value) pairs for one metric.

    Only the weights of roles that actually contributed enter the
    denominator, so a metric is never diluted by roles that abstained.
    """
    if not contributions:
        return None

    weighted_sum = 0.0
    total_weight = 0.0
    for role_key, value in contributions:
        weight = weights.weight(role_key, metric)
        weighted_sum += value * weight
        total_weight += weight

    if total_weight == 0:
        logger.warning("Total weight is 0 for %s, using plain average", metric)
        return sum(value for _, value in contributions) / len(contributions)

    return weighted_sum / total_weight


def warn_primary_nulls(results: Sequence[WorkerResult], weights: WeightTable) -> list[tuple[str, str]]:
    """Log a warning for every role returning null on a metric it is primary for.

    Returns the offending (worker_id, metric) pairs.
    """
    offenders: list[tuple[str, str]] = []
    for result in results:
        for metric, value in result.scorecard.items():
            if value is None and weights.is_primary(result.role_key, metric):
                logger.warning(
                    "%s (%s) returned null for primary metric %s (%.1f%% weight)",
                    result.worker_id, result.role_key, metric,
                    weights.weight(result.role_key, metric) * 100,
                )
                offenders.append((result.worker_id, metric))
    return offenders


def aggregate(
    results: Sequence[WorkerResult],
    weights: WeightTable,
    registry: MetricRegistry,
) -> Scorecard:
    """Combine one round's scorecards into a single weighted scorecard.

    Metrics no worker scored (all null or missing) are absent from the output.
    """
    warn_primary_nulls(results, weights)

    scorecard: Scorecard = {}
    for metric in registry:
        contributions = [
            (r.role_key, r.scorecard[metric])
            for r in results
            if r.scorecard.get(metric) is not None
        ]
        value = weighted_average(contributions, metric, weights)
        if value is not None:
            scorecard[metric] = value
    return scorecard
