"""Load settings.yaml into typed objects. Validates round limits and weights at startup."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from council.discussion import DiscussionConfig
from council.errors import ConfigurationError
from council.metrics import DEFAULT_METRICS, MetricDefinition, MetricRegistry
from council.weights import DEFAULT_ROLE_WEIGHT, DEFAULT_WEIGHTS, PRIMARY_WEIGHT_THRESHOLD, WeightTable

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
SETTINGS_ENV = "COUNCIL_SETTINGS"


@dataclass
class AppConfig:
    discussion: DiscussionConfig
    registry: MetricRegistry
    weights: WeightTable


def default_settings_path() -> Path:
    """Settings path from COUNCIL_SETTINGS, falling back to the bundled settings.yaml."""
    override = os.environ.get(SETTINGS_ENV, "").strip()
    return Path(override) if override else _SETTINGS_PATH


def _load_discussion(raw: dict) -> DiscussionConfig:
    timeout = raw.get("worker_timeout_sec", 300)
    try:
        config = DiscussionConfig(
            max_rounds=int(raw.get("max_rounds", 3)),
            min_rounds=int(raw.get("min_rounds", 2)),
            convergence_threshold=float(raw.get("convergence_threshold", 0.85)),
            worker_timeout_sec=float(timeout) if timeout is not None else None,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("discussion", f"invalid value: {exc}") from exc
    config.validate()
    return config


def _load_metrics(raw: list | None) -> MetricRegistry:
    if not raw:
        return MetricRegistry(DEFAULT_METRICS)
    definitions = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {"name": entry}
        if "name" not in entry:
            raise ConfigurationError("metrics", f"metric entry without a name: {entry!r}")
        definitions.append(
            MetricDefinition(
                name=str(entry["name"]),
                display_name=str(entry.get("display_name", "")),
                description=str(entry.get("description", "")),
                scale=str(entry.get("scale", "")),
                nullable=bool(entry.get("nullable", True)),
            )
        )
    return MetricRegistry(definitions)


def _load_weights(raw: dict | None, registry: MetricRegistry) -> WeightTable:
    raw = raw or {}
    weights = WeightTable(
        raw.get("roles") or DEFAULT_WEIGHTS,
        default_weight=float(raw.get("default_weight", DEFAULT_ROLE_WEIGHT)),
        primary_threshold=float(raw.get("primary_threshold", PRIMARY_WEIGHT_THRESHOLD)),
    )
    for error in weights.validate_sums(registry):
        logger.warning("Weight table: %s", error)
    return weights


def load_config(settings_path: Path | None = None) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and
    ConfigurationError if a value is invalid. Weight sums that are not 1.0
    are only logged.
    """
    settings_path = settings_path or default_settings_path()
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    registry = _load_metrics(raw.get("metrics"))
    config = AppConfig(
        discussion=_load_discussion(raw.get("discussion") or {}),
        registry=registry,
        weights=_load_weights(raw.get("weights"), registry),
    )
    logger.debug(
        "Loaded settings from %s: %d metrics, %d roles",
        settings_path, len(config.registry), len(config.weights.roles),
    )
    return config
