"""Tests for council/executor.py."""

import asyncio
import logging
from unittest.mock import AsyncMock

from council.executor import run_round
from council.models import ResourceUsage, WorkerResult
from council.workers.base import WorkerError
from tests.conftest import MockWorker, make_context


async def test_all_workers_succeed(small_registry):
    workers = [
        MockWorker("a", "reviewer", scorecard={"quality": 7}),
        MockWorker("b", "tester", scorecard={"quality": 6}),
    ]
    outcome = await run_round(workers, make_context(), small_registry)
    assert [r.worker_id for r in outcome.results] == ["a", "b"]
    assert outcome.failures == []


async def test_results_are_stamped_and_sanitized(small_registry):
    worker = MockWorker("a", "reviewer", scorecard={"quality": 7, "lines_changed": 120})
    outcome = await run_round([worker], make_context(round_index=2), small_registry)
    result = outcome.results[0]
    assert result.worker_id == "a"
    assert result.role_key == "reviewer"
    assert result.round_index == 2
    assert result.scorecard == {"quality": 7}


async def test_workers_run_concurrently(small_registry):
    """Each worker waits for the other: only a concurrent fan-out completes."""
    a_started = asyncio.Event()
    b_started = asyncio.Event()

    async def run_a(context):
        a_started.set()
        await b_started.wait()
        return WorkerResult(summary="A finished", scorecard={"quality": 7})

    async def run_b(context):
        b_started.set()
        await a_started.wait()
        return WorkerResult(summary="B finished", scorecard={"quality": 7})

    a = MockWorker("a")
    b = MockWorker("b")
    a.execute = AsyncMock(side_effect=run_a)
    b.execute = AsyncMock(side_effect=run_b)

    outcome = await run_round([a, b], make_context(), small_registry, timeout_sec=2)
    assert len(outcome.results) == 2


async def test_failing_worker_does_not_abort_round(small_registry):
    good = MockWorker("good", scorecard={"quality": 7})
    bad = MockWorker("bad")
    bad.execute = AsyncMock(side_effect=WorkerError("bad", "API error"))

    outcome = await run_round([good, bad], make_context(), small_registry)
    assert [r.worker_id for r in outcome.results] == ["good"]
    assert outcome.failed_ids == ["bad"]
    assert "API error" in outcome.failures[0].reason


async def test_unexpected_exception_becomes_failure(small_registry, caplog):
    bad = MockWorker("bad")
    bad.execute = AsyncMock(side_effect=RuntimeError("boom"))
    with caplog.at_level(logging.WARNING):
        outcome = await run_round([bad], make_context(), small_registry)
    assert outcome.results == []
    assert outcome.failed_ids == ["bad"]
    assert "boom" in caplog.text


async def test_timeout_counts_as_failure(small_registry):
    good = MockWorker("good", scorecard={"quality": 7})
    slow = MockWorker("slow")

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    slow.execute = AsyncMock(side_effect=hang)

    outcome = await run_round([good, slow], make_context(), small_registry, timeout_sec=0.05)
    assert [r.worker_id for r in outcome.results] == ["good"]
    assert outcome.failed_ids == ["slow"]
    assert "timed out" in outcome.failures[0].reason


async def test_blank_summary_is_invalid(small_registry):
    blank = MockWorker("blank", summary="   \n", scorecard={"quality": 7})
    outcome = await run_round([blank], make_context(), small_registry)
    assert outcome.results == []
    assert outcome.failures[0].reason == "empty summary"


async def test_null_required_metric_is_invalid(small_registry):
    worker = MockWorker("w", scorecard={"quality": None, "coverage": 4})
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.results == []
    assert "quality" in outcome.failures[0].reason


async def test_nullable_metric_may_be_null(small_registry):
    worker = MockWorker("w", scorecard={"quality": 6, "coverage": None})
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.results[0].scorecard == {"quality": 6, "coverage": None}


async def test_non_numeric_score_is_invalid(small_registry):
    worker = MockWorker("w", scorecard={"quality": "seven"})
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.results == []
    assert "non-numeric" in outcome.failures[0].reason


async def test_wrong_return_type_is_invalid(small_registry):
    worker = MockWorker("w")
    worker.execute = AsyncMock(return_value={"summary": "not a result"})
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.failed_ids == ["w"]


async def test_resource_usage_is_preserved(small_registry):
    worker = MockWorker("w")
    worker.execute = AsyncMock(
        return_value=WorkerResult(
            summary="fine",
            scorecard={"quality": 7},
            resource_usage=ResourceUsage(input_units=100, output_units=20, cost=0.01),
        )
    )
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.results[0].resource_usage == ResourceUsage(100, 20, 0.01)


async def test_empty_worker_list(small_registry):
    outcome = await run_round([], make_context(), small_registry)
    assert outcome.results == []
    assert outcome.failures == []


async def test_missing_scorecard_is_invalid(small_registry):
    worker = MockWorker("w")
    worker.execute = AsyncMock(return_value=WorkerResult(summary="fine", scorecard=None))
    outcome = await run_round([worker], make_context(), small_registry)
    assert outcome.results == []
    assert "not a mapping" in outcome.failures[0].reason


async def test_missing_concerns_and_usage_are_normalized(small_registry):
    worker = MockWorker("w")
    worker.execute = AsyncMock(
        return_value=WorkerResult(
            summary="fine", scorecard={"quality": 7}, concerns=None, resource_usage=None,
        )
    )
    outcome = await run_round([worker], make_context(), small_registry)
    result = outcome.results[0]
    assert result.concerns == ()
    assert result.resource_usage == ResourceUsage()
