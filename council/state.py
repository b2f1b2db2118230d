"""Mutable discussion state, its per-field fold functions and plain-data serialization."""

import dataclasses
import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from council.models import (
    ConvergenceResult,
    ConversationMessage,
    DiffContext,
    ResourceUsage,
    RoundRecord,
    Scorecard,
    TeamConcern,
    WorkerFailure,
    WorkerResult,
)

STATE_VERSION = 1


class DiscussionPhase(str, enum.Enum):
    AWAITING_ROUND = "awaiting_round"
    ROUND_IN_PROGRESS = "round_in_progress"
    DECIDING = "deciding"
    DONE = "done"


@dataclass
class DiscussionState:
    diff: DiffContext
    max_rounds: int
    min_rounds: int
    convergence_threshold: float
    round_index: int = 0
    phase: DiscussionPhase = DiscussionPhase.AWAITING_ROUND
    excluded_workers: set[str] = field(default_factory=set)
    previous_round_results: list[WorkerResult] = field(default_factory=list)
    running_aggregate: Scorecard = field(default_factory=dict)
    total_resource_usage: ResourceUsage = field(default_factory=ResourceUsage)
    history: list[RoundRecord] = field(default_factory=list)
    concerns: list[TeamConcern] = field(default_factory=list)
    conversation: list[ConversationMessage] = field(default_factory=list)
    converged: bool = False
    convergence_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "diff": _diff_to_dict(self.diff),
            "max_rounds": self.max_rounds,
            "min_rounds": self.min_rounds,
            "convergence_threshold": self.convergence_threshold,
            "round_index": self.round_index,
            "phase": self.phase.value,
            "excluded_workers": sorted(self.excluded_workers),
            "previous_round_results": [_result_to_dict(r) for r in self.previous_round_results],
            "running_aggregate": dict(self.running_aggregate),
            "total_resource_usage": dataclasses.asdict(self.total_resource_usage),
            "history": [_record_to_dict(r) for r in self.history],
            "concerns": [dataclasses.asdict(c) for c in self.concerns],
            "conversation": [_message_to_dict(m) for m in self.conversation],
            "converged": self.converged,
            "convergence_score": self.convergence_score,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DiscussionState":
        return cls(
            diff=_diff_from_dict(raw["diff"]),
            max_rounds=int(raw["max_rounds"]),
            min_rounds=int(raw["min_rounds"]),
            convergence_threshold=float(raw["convergence_threshold"]),
            round_index=int(raw.get("round_index", 0)),
            phase=DiscussionPhase(raw.get("phase", DiscussionPhase.AWAITING_ROUND.value)),
            excluded_workers=set(raw.get("excluded_workers", [])),
            previous_round_results=[_result_from_dict(r) for r in raw.get("previous_round_results", [])],
            running_aggregate=dict(raw.get("running_aggregate", {})),
            total_resource_usage=ResourceUsage(**raw.get("total_resource_usage", {})),
            history=[_record_from_dict(r) for r in raw.get("history", [])],
            concerns=[TeamConcern(**c) for c in raw.get("concerns", [])],
            conversation=[_message_from_dict(m) for m in raw.get("conversation", [])],
            converged=bool(raw.get("converged", False)),
            convergence_score=float(raw.get("convergence_score", 0.0)),
        )


# --- Fold functions: one per state field, applied once per round ---

def append_history(state: DiscussionState, record: RoundRecord) -> None:
    state.history.append(record)


def replace_current_round_results(state: DiscussionState, results: Iterable[WorkerResult]) -> None:
    state.previous_round_results = list(results)


def sum_resource_usage(state: DiscussionState, results: Iterable[WorkerResult]) -> ResourceUsage:
    """Add the round's usage to the running total and return the round's share."""
    round_usage = ResourceUsage()
    for result in results:
        round_usage = round_usage + result.resource_usage
    state.total_resource_usage = state.total_resource_usage + round_usage
    return round_usage


def union_excluded_workers(state: DiscussionState, worker_ids: Iterable[str]) -> None:
    state.excluded_workers |= set(worker_ids)


def merge_aggregate(state: DiscussionState, scorecard: Mapping[str, Any]) -> None:
    """Overwrite per metric; metrics absent from this round keep their earlier value."""
    state.running_aggregate = {**state.running_aggregate, **scorecard}


def replace_concerns(state: DiscussionState, results: Iterable[WorkerResult]) -> None:
    state.concerns = [
        TeamConcern(worker_id=r.worker_id, role_key=r.role_key, concern=c.strip())
        for r in results
        for c in r.concerns
        if isinstance(c, str) and c.strip()
    ]


def append_conversation(state: DiscussionState, results: Iterable[WorkerResult]) -> None:
    state.conversation.extend(
        ConversationMessage(
            round_index=r.round_index,
            worker_id=r.worker_id,
            role_key=r.role_key,
            message=r.summary,
            concerns=tuple(r.concerns),
        )
        for r in results
    )


# --- Plain-data conversion helpers ---

def _diff_to_dict(diff: DiffContext) -> dict[str, Any]:
    data = dataclasses.asdict(diff)
    data["files_changed"] = list(diff.files_changed)
    return data


def _diff_from_dict(raw: Mapping[str, Any]) -> DiffContext:
    return DiffContext(
        diff=raw["diff"],
        files_changed=tuple(raw.get("files_changed", ())),
        commit_hash=raw.get("commit_hash"),
        developer_overview=raw.get("developer_overview"),
    )


def _result_to_dict(result: WorkerResult) -> dict[str, Any]:
    data = dataclasses.asdict(result)
    data["concerns"] = list(result.concerns)
    data["scorecard"] = dict(result.scorecard)
    return data


def _result_from_dict(raw: Mapping[str, Any]) -> WorkerResult:
    data = dict(raw)
    data["concerns"] = tuple(data.get("concerns", ()))
    data["resource_usage"] = ResourceUsage(**data.get("resource_usage", {}))
    data["scorecard"] = dict(data.get("scorecard", {}))
    return WorkerResult(**data)


def _message_to_dict(message: ConversationMessage) -> dict[str, Any]:
    data = dataclasses.asdict(message)
    data["concerns"] = list(message.concerns)
    return data


def _message_from_dict(raw: Mapping[str, Any]) -> ConversationMessage:
    data = dict(raw)
    data["concerns"] = tuple(data.get("concerns", ()))
    return ConversationMessage(**data)


def _record_to_dict(record: RoundRecord) -> dict[str, Any]:
    return {
        "round_index": record.round_index,
        "results": [_result_to_dict(r) for r in record.results],
        "failures": [dataclasses.asdict(f) for f in record.failures],
        "aggregated_scorecard": dict(record.aggregated_scorecard),
        "convergence": dataclasses.asdict(record.convergence),
        "resource_usage": dataclasses.asdict(record.resource_usage),
    }


def _record_from_dict(raw: Mapping[str, Any]) -> RoundRecord:
    return RoundRecord(
        round_index=int(raw["round_index"]),
        results=tuple(_result_from_dict(r) for r in raw.get("results", [])),
        failures=tuple(WorkerFailure(**f) for f in raw.get("failures", [])),
        aggregated_scorecard=dict(raw.get("aggregated_scorecard", {})),
        convergence=ConvergenceResult(**raw["convergence"]),
        resource_usage=ResourceUsage(**raw.get("resource_usage", {})),
    )
