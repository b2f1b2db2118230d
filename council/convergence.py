"""Convergence detection between consecutive discussion rounds.

The score blends two signals:

* content similarity, the all-pairs mean Jaccard similarity of the words
  (longer than three characters) in each result's summary and details;
* metric stability, one minus the mean normalized change of the per-metric
  averages between the two rounds.

It is an explainable heuristic, not a statistical test.
"""

from collections import Counter
from collections.abc import Sequence

from council.models import ConvergenceResult, WorkerResult

CONTENT_WEIGHT = 0.7
STABILITY_WEIGHT = 0.3
METRIC_SCALE = 10.0  # typical upper bound of a 1-10 metric
MIN_WORD_LENGTH = 4


def _words(result: WorkerResult) -> set[str]:
    text = f"{result.summary or ''} {result.details or ''}".lower()
    return {w for w in text.split() if len(w) >= MIN_WORD_LENGTH}


def jaccard_similarity(a: WorkerResult, b: WorkerResult) -> float:
    words_a = _words(a)
    words_b = _words(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def content_similarity(current: Sequence[WorkerResult], previous: Sequence[WorkerResult]) -> float:
    """Mean Jaccard similarity over every (current, previous) pair."""
    pairs = [jaccard_similarity(c, p) for c in current for p in previous]
    if not pairs:
        return 0.0
    return sum(pairs) / len(pairs)


def _metric_values(results: Sequence[WorkerResult]) -> dict[str, list[float]]:
    values: dict[str, list[float]] = {}
    for result in results:
        for metric, value in result.scorecard.items():
            if value is not None:
                values.setdefault(metric, []).append(abs(value))
    return values


def metric_stability(current: Sequence[WorkerResult], previous: Sequence[WorkerResult]) -> float:
    """1.0 when per-metric averages did not move, lower as they drift apart."""
    current_values = _metric_values(current)
    previous_values = _metric_values(previous)
    shared = sorted(set(current_values) & set(previous_values))
    if not shared:
        return 1.0

    differences = []
    for metric in shared:
        current_avg = sum(current_values[metric]) / len(current_values[metric])
        previous_avg = sum(previous_values[metric]) / len(previous_values[metric])
        differences.append(abs(current_avg - previous_avg) / METRIC_SCALE)

    stability = 1.0 - sum(differences) / len(differences)
    return min(1.0, max(0.0, stability))


def _fingerprint(results: Sequence[WorkerResult]) -> Counter:
    return Counter(
        (r.worker_id, r.summary, r.details, tuple(sorted(r.scorecard.items())))
        for r in results
    )


def detect(
    current: Sequence[WorkerResult],
    previous: Sequence[WorkerResult],
    threshold: float,
) -> ConvergenceResult:
    """Compare a round with the previous one.

    Returns score 0 and not converged when there is no previous round, and
    score 1 when both rounds carry exactly the same outputs.
    """
    if not previous:
        return ConvergenceResult(score=0.0, converged=False, content_similarity=0.0, metric_stability=1.0)

    if current and _fingerprint(current) == _fingerprint(previous):
        return ConvergenceResult(score=1.0, converged=1.0 >= threshold, content_similarity=1.0, metric_stability=1.0)

    content = content_similarity(current, previous)
    stability = metric_stability(current, previous)
    score = CONTENT_WEIGHT * content + STABILITY_WEIGHT * stability
    return ConvergenceResult(
        score=score,
        converged=score >= threshold,
        content_similarity=content,
        metric_stability=stability,
    )
