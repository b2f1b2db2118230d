"""Abstract base for all reviewer workers."""

from abc import ABC, abstractmethod

from council.models import EvalContext, WorkerResult


class WorkerError(Exception):
    """Raised when a worker invocation fails."""

    def __init__(self, worker_id: str, message: str) -> None:
        self.worker_id = worker_id
        super().__init__(f"[{worker_id}] {message}")


class Worker(ABC):
    """A reviewer that scores a diff against some of the registered metrics."""

    @abstractmethod
    def worker_id(self) -> str:
        """Return the unique id of this worker within a roster."""
        ...

    @abstractmethod
    def role_key(self) -> str:
        """Return the role key used for weight lookups (e.g. 'sdet')."""
        ...

    def can_execute(self, context: EvalContext) -> bool:
        """Return True if this worker is able to evaluate the given diff."""
        return bool(context.diff.diff)

    @abstractmethod
    async def execute(self, context: EvalContext) -> WorkerResult:
        """Evaluate the diff for one round.

        Args:
            context: Diff, round metadata, peers' previous results and concerns.

        Returns:
            WorkerResult with summary, details and scorecard. The executor
            stamps worker_id, role_key and round_index.

        Raises:
            WorkerError: On any failure. Other exceptions are tolerated too.
        """
        ...
