"""Per-role expertise weights used for weighted voting on each metric.

Each role scores every metric, but with a different level of confidence.
Primary expertise sits around 0.40-0.45, secondary around 0.15-0.20 and
tertiary around 0.08-0.13. Weights for one metric are expected to sum to 1.0
across the default roster.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from council.errors import ConfigurationError

logger = logging.getLogger(__name__)

PRIMARY_WEIGHT_THRESHOLD = 0.4
DEFAULT_ROLE_WEIGHT = 0.2  # equal share across a five-role roster

DEFAULT_WEIGHTS: dict[str, dict[str, float]] = {
    "business-analyst": {
        "functional_impact": 0.435,
        "ideal_time_hours": 0.417,
        "test_coverage": 0.12,
        "code_quality": 0.083,
        "code_complexity": 0.083,
        "actual_time_hours": 0.136,
        "technical_debt_hours": 0.13,
        "debt_reduction_hours": 0.13,
    },
    "sdet": {
        "functional_impact": 0.13,
        "ideal_time_hours": 0.083,
        "test_coverage": 0.4,
        "code_quality": 0.167,
        "code_complexity": 0.125,
        "actual_time_hours": 0.091,
        "technical_debt_hours": 0.13,
        "debt_reduction_hours": 0.13,
    },
    "developer-author": {
        "functional_impact": 0.13,
        "ideal_time_hours": 0.167,
        "test_coverage": 0.12,
        "code_quality": 0.125,
        "code_complexity": 0.167,
        "actual_time_hours": 0.455,
        "technical_debt_hours": 0.13,
        "debt_reduction_hours": 0.13,
    },
    "senior-architect": {
        "functional_impact": 0.174,
        "ideal_time_hours": 0.208,
        "test_coverage": 0.16,
        "code_quality": 0.208,
        "code_complexity": 0.417,
        "actual_time_hours": 0.182,
        "technical_debt_hours": 0.435,
        "debt_reduction_hours": 0.435,
    },
    "developer-reviewer": {
        "functional_impact": 0.13,
        "ideal_time_hours": 0.125,
        "test_coverage": 0.2,
        "code_quality": 0.417,
        "code_complexity": 0.208,
        "actual_time_hours": 0.136,
        "technical_debt_hours": 0.174,
        "debt_reduction_hours": 0.174,
    },
}

# Display names and spelling variants seen in reviewer output
_ROLE_ALIASES = {
    "business analyst": "business-analyst",
    "sdet (test automation engineer)": "sdet",
    "test automation engineer": "sdet",
    "developer (author)": "developer-author",
    "developer author": "developer-author",
    "senior architect": "senior-architect",
    "developer reviewer": "developer-reviewer",
    "developer (reviewer)": "developer-reviewer",
}


def normalize_role(role_key: str) -> str:
    """Map a display name or variant spelling to its technical role key."""
    normalized = role_key.lower().strip()
    return _ROLE_ALIASES.get(normalized, normalized)


class WeightTable:
    """Read-only (role, metric) -> weight lookup."""

    def __init__(
        self,
        weights: Mapping[str, Mapping[str, float]] = DEFAULT_WEIGHTS,
        default_weight: float = DEFAULT_ROLE_WEIGHT,
        primary_threshold: float = PRIMARY_WEIGHT_THRESHOLD,
    ) -> None:
        table: dict[str, MappingProxyType] = {}
        for role, per_metric in weights.items():
            for metric, value in per_metric.items():
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigurationError("weights", f"{role}.{metric} is not a number: {value!r}")
                if not 0.0 <= value <= 1.0:
                    raise ConfigurationError("weights", f"{role}.{metric}={value} is outside [0, 1]")
            table[normalize_role(role)] = MappingProxyType(
                {metric: float(value) for metric, value in per_metric.items()}
            )
        if not 0.0 <= default_weight <= 1.0:
            raise ConfigurationError("default_weight", f"{default_weight} is outside [0, 1]")
        self._table = MappingProxyType(table)
        self.default_weight = float(default_weight)
        self.primary_threshold = float(primary_threshold)
        self._warned_roles: set[str] = set()

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self._table)

    def weight(self, role_key: str, metric: str) -> float:
        role = normalize_role(role_key)
        weights = self._table.get(role)
        if weights is None:
            if role not in self._warned_roles:
                self._warned_roles.add(role)
                logger.warning(
                    "Unknown role %r, using default weight %.2f", role_key, self.default_weight,
                )
            return self.default_weight
        return weights.get(metric, 0.0)

    def is_primary(self, role_key: str, metric: str) -> bool:
        return self.weight(role_key, metric) >= self.primary_threshold

    def validate_sums(self, metrics: Iterable[str], tolerance: float = 0.001) -> list[str]:
        """Return one message per metric whose weights do not sum to 1.0."""
        errors: list[str] = []
        for metric in metrics:
            total = sum(w.get(metric, 0.0) for w in self._table.values())
            if round(abs(total - 1.0), 9) > tolerance:
                errors.append(f"{metric}: weights sum to {total:.3f} (expected 1.0)")
        return errors
