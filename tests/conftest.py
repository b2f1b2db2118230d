"""Shared pytest fixtures."""

from unittest.mock import AsyncMock

import pytest

from council.discussion import DiscussionConfig
from council.metrics import MetricDefinition, MetricRegistry
from council.models import DiffContext, EvalContext, ResourceUsage, WorkerResult
from council.weights import WeightTable
from council.workers.base import Worker


def make_result(
    worker_id: str = "w1",
    role_key: str = "sdet",
    summary: str = "Solid change with reasonable tests",
    details: str = "",
    scorecard: dict | None = None,
    concerns: tuple[str, ...] = (),
    usage: ResourceUsage | None = None,
    round_index: int = 0,
) -> WorkerResult:
    return WorkerResult(
        summary=summary,
        details=details,
        scorecard=dict(scorecard or {}),
        concerns=concerns,
        resource_usage=usage or ResourceUsage(),
        confidence_score=80.0,
        worker_id=worker_id,
        role_key=role_key,
        round_index=round_index,
    )


def make_context(diff: DiffContext | None = None, round_index: int = 0, max_rounds: int = 3) -> EvalContext:
    return EvalContext(
        diff=diff or DiffContext(diff="diff --git a/app.py b/app.py\n+print('hi')\n", files_changed=("app.py",)),
        round_index=round_index,
        max_rounds=max_rounds,
        is_final_round=round_index == max_rounds - 1,
        round_label="Initial Analysis",
    )


class MockWorker(Worker):
    """Test double Worker."""

    def __init__(
        self,
        worker_id: str = "mock",
        role_key: str = "sdet",
        summary: str = "Mock review summary",
        scorecard: dict | None = None,
        capable: bool = True,
    ) -> None:
        self._id = worker_id
        self._role = role_key
        self.capable = capable
        self.can_execute_calls = 0
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because execute is defined in the class body below.
        self.execute = AsyncMock(  # type: ignore[assignment]
            return_value=WorkerResult(summary=summary, scorecard=dict(scorecard or {}))
        )

    def worker_id(self) -> str:
        return self._id

    def role_key(self) -> str:
        return self._role

    def can_execute(self, context: EvalContext) -> bool:
        self.can_execute_calls += 1
        return self.capable

    async def execute(self, context: EvalContext) -> WorkerResult:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return WorkerResult(summary="Mock review summary")


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry()


@pytest.fixture
def small_registry() -> MetricRegistry:
    return MetricRegistry([
        MetricDefinition("quality", nullable=False),
        MetricDefinition("coverage"),
        MetricDefinition("debt"),
    ])


@pytest.fixture
def weights() -> WeightTable:
    return WeightTable()


@pytest.fixture
def small_weights() -> WeightTable:
    return WeightTable({
        "reviewer": {"quality": 0.5, "coverage": 0.25, "debt": 0.5},
        "tester": {"quality": 0.25, "coverage": 0.5, "debt": 0.25},
        "analyst": {"quality": 0.25, "coverage": 0.25, "debt": 0.25},
    })


@pytest.fixture
def diff_context() -> DiffContext:
    return DiffContext(
        diff="diff --git a/app.py b/app.py\n+def handler():\n+    return 42\n",
        files_changed=("app.py",),
        commit_hash="abc1234",
    )


@pytest.fixture
def fast_config() -> DiscussionConfig:
    return DiscussionConfig(max_rounds=3, min_rounds=2, convergence_threshold=0.85, worker_timeout_sec=5)
