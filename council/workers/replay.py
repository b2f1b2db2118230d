"""Recorded-panel worker: replays a reviewer's answers from a YAML panel file.

Panel file layout::

    reviewers:
      - id: architect-1
        role: senior-architect
        file_patterns: ["src/*"]        # optional fnmatch globs
        rounds:
          - summary: Introduces a cache layer ...
            details: ...
            scorecard: {code_quality: 7, code_complexity: 5}
            concerns: [Cache invalidation is untested]
            usage: {input_units: 1200, output_units: 300, cost: 0.004}
            confidence: 82
          - error: upstream model unavailable   # raise WorkerError this round
          - delay_sec: 2.5                      # sleep before answering

Round ``i`` replays entry ``min(i, len(rounds) - 1)``, so the last answer
repeats once the recording runs out.
"""

import asyncio
import fnmatch
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from council.models import EvalContext, ResourceUsage, WorkerResult
from council.workers.base import Worker, WorkerError

logger = logging.getLogger(__name__)


class ReplayWorker(Worker):
    """Worker backed by recorded round answers."""

    def __init__(
        self,
        worker_id: str,
        role_key: str,
        rounds: list[Mapping[str, Any]],
        file_patterns: list[str] | None = None,
    ) -> None:
        if not rounds:
            raise ValueError(f"Reviewer {worker_id} has no recorded rounds")
        self._worker_id = worker_id
        self._role_key = role_key
        self._rounds = list(rounds)
        self._file_patterns = list(file_patterns or [])

    def worker_id(self) -> str:
        return self._worker_id

    def role_key(self) -> str:
        return self._role_key

    def can_execute(self, context: EvalContext) -> bool:
        if not context.diff.diff.strip():
            return False
        if not self._file_patterns:
            return True
        return any(
            fnmatch.fnmatch(path, pattern)
            for path in context.diff.files_changed
            for pattern in self._file_patterns
        )

    async def execute(self, context: EvalContext) -> WorkerResult:
        entry = self._rounds[min(context.round_index, len(self._rounds) - 1)]

        delay = float(entry.get("delay_sec", 0) or 0)
        if delay > 0:
            await asyncio.sleep(delay)
        if entry.get("error"):
            raise WorkerError(self._worker_id, str(entry["error"]))

        usage = entry.get("usage") or {}
        logger.debug("Replaying %s round %d", self._worker_id, context.round_index + 1)
        return WorkerResult(
            summary=str(entry.get("summary", "")),
            details=str(entry.get("details", "")),
            scorecard=dict(entry.get("scorecard") or {}),
            concerns=tuple(str(c) for c in entry.get("concerns") or ()),
            resource_usage=ResourceUsage(
                input_units=int(usage.get("input_units", 0)),
                output_units=int(usage.get("output_units", 0)),
                cost=float(usage.get("cost", 0.0)),
            ),
            confidence_score=float(entry.get("confidence", 0)),
            refinement_count=int(entry.get("refinements", 1)),
        )


def load_panel(panel_path: Path) -> list[ReplayWorker]:
    """Build one ReplayWorker per reviewer in a YAML panel file.

    Raises FileNotFoundError if the file is missing and ValueError if a
    reviewer entry is malformed.
    """
    if not panel_path.exists():
        raise FileNotFoundError(f"Panel file not found: {panel_path}")

    with panel_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    workers: list[ReplayWorker] = []
    for entry in raw.get("reviewers", []):
        try:
            worker_id = str(entry["id"])
            role_key = str(entry.get("role", worker_id))
            rounds = list(entry["rounds"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed reviewer entry in {panel_path}: {entry!r}") from exc
        workers.append(ReplayWorker(worker_id, role_key, rounds, entry.get("file_patterns")))

    logger.info("Loaded %d reviewer(s) from %s", len(workers), panel_path)
    return workers
