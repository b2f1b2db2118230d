"""Metric registry: the ordered set of pillars a scorecard may contain."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from council.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    display_name: str = ""
    description: str = ""
    scale: str = ""
    nullable: bool = True


DEFAULT_METRICS: tuple[MetricDefinition, ...] = (
    MetricDefinition(
        "functional_impact", "Functional Impact",
        "User-facing impact and business value of the change", "1-10 (higher = more impact)",
    ),
    MetricDefinition(
        "ideal_time_hours", "Ideal Time Hours",
        "How long the change should have taken under ideal conditions", "hours",
    ),
    MetricDefinition(
        "test_coverage", "Test Coverage",
        "Quality and extent of the accompanying tests", "1-10 (higher = better)",
    ),
    MetricDefinition(
        "code_quality", "Code Quality",
        "Cleanliness, maintainability and readability", "1-10 (higher = better)",
        nullable=False,
    ),
    MetricDefinition(
        "code_complexity", "Code Complexity",
        "Cognitive and architectural complexity", "1-10 (lower = better)",
        nullable=False,
    ),
    MetricDefinition(
        "actual_time_hours", "Actual Time Hours",
        "Time actually spent implementing the change", "hours",
    ),
    MetricDefinition(
        "technical_debt_hours", "Technical Debt Hours",
        "Debt introduced (positive) or paid down (negative)", "hours, may be negative",
    ),
    MetricDefinition(
        "debt_reduction_hours", "Debt Reduction Hours",
        "Future maintenance hours saved by the change", "hours",
    ),
)


class MetricRegistry:
    """Ordered, read-only collection of metric definitions."""

    def __init__(self, definitions: Iterable[MetricDefinition] = DEFAULT_METRICS) -> None:
        self._definitions: dict[str, MetricDefinition] = {}
        for definition in definitions:
            if not definition.name:
                raise ConfigurationError("metrics", "metric name must not be empty")
            if definition.name in self._definitions:
                raise ConfigurationError("metrics", f"duplicate metric name: {definition.name}")
            self._definitions[definition.name] = definition
        if not self._definitions:
            raise ConfigurationError("metrics", "at least one metric is required")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._definitions)

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, name: str) -> MetricDefinition:
        return self._definitions[name]

    def is_nullable(self, name: str) -> bool:
        return self._definitions[name].nullable

    def non_nullable(self) -> tuple[str, ...]:
        return tuple(n for n, d in self._definitions.items() if not d.nullable)

    def sanitize(self, scorecard: Mapping[str, object]) -> dict:
        """Return a copy of the scorecard restricted to registered metrics, in registry order."""
        dropped = [k for k in scorecard if k not in self._definitions]
        if dropped:
            logger.debug("Stripping unknown metrics from scorecard: %s", dropped)
        return {name: scorecard[name] for name in self._definitions if name in scorecard}

    def null_violations(self, scorecard: Mapping[str, object]) -> list[str]:
        """Non-nullable metrics that are present in the scorecard with a None value."""
        return [
            name for name in self.non_nullable()
            if name in scorecard and scorecard[name] is None
        ]
