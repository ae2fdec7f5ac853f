"""Load, validate, and hot-reload the cycle engine configuration.

The config lives in ``cycle_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_engine_config()`` to re-read from
disk after an admin update.

Usage::

    from src.cycles.config_loader import get_engine_config

    config = get_engine_config()
    config.defaults.cycle_length          # 28
    config.analytics.range_spec("7d")     # RangeSpec(days=7, years=0)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("mimos.cycles.config")

_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleDefaults:
    """Values substituted when a cycle record lacks them."""

    cycle_length: int = 28
    period_length: int = 5

    def effective_cycle_length(self, value: object) -> int:
        """Return ``value`` if it is a usable cycle length, else the default."""
        return _positive_int_or(value, self.cycle_length)

    def effective_period_length(self, value: object) -> int:
        """Return ``value`` if it is a usable period length, else the default."""
        return _positive_int_or(value, self.period_length)


@dataclass(frozen=True)
class RangeSpec:
    """How far back a range token reaches from "now"."""

    days: int = 0
    years: int = 0


@dataclass
class AnalyticsConfig:
    """Admin analytics settings."""

    default_range: str
    ranges: dict[str, RangeSpec]
    top_n: int = 10
    age_boundaries: list[int] = field(
        default_factory=lambda: [18, 25, 30, 35, 40, 45, 50]
    )
    histogram_sentinel: str = "50+"
    histogram_label_width: int = 4
    active_user_days: int = 30

    def range_spec(self, token: str | None) -> RangeSpec:
        """Return the spec for ``token``, falling back to the default range."""
        if token in self.ranges:
            return self.ranges[token]
        return self.ranges[self.default_range]


@dataclass
class CollectionsConfig:
    """Collection names in the document store."""

    users: str = "users"
    cycles: str = "cycles"
    symptoms: str = "symptoms"


@dataclass
class FieldsConfig:
    """Document field names the engine reads."""

    user_id: str = "userId"
    cycle_start: str = "startDate"
    created_at: str = "createdAt"
    last_active: str = "lastActive"
    cycle_length: str = "cycleLength"
    symptom: str = "symptom"
    age: str = "age"


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    Attributes:
        version:     Config schema version string.
        defaults:    Defaults for sparse cycle records.
        analytics:   Range tokens, ranking and histogram settings.
        collections: Store collection names.
        fields:      Store field names.
    """

    version: str
    defaults: CycleDefaults
    analytics: AnalyticsConfig
    collections: CollectionsConfig
    fields: FieldsConfig
    _raw: dict = field(default_factory=dict, repr=False)


def _positive_int_or(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return default


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Collects every problem before raising so a bad file is reported in one go.
    """
    errors: list[str] = []

    def _positive(section: str, key: str, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"{section}.{key} must be a positive integer, got {value!r}")
            return 1
        return value

    version = str(raw.get("version", "1.0"))

    # ── Cycle defaults ──
    cd_raw = raw.get("cycle_defaults") or {}
    defaults = CycleDefaults(
        cycle_length=_positive("cycle_defaults", "cycle_length", cd_raw.get("cycle_length", 28)),
        period_length=_positive("cycle_defaults", "period_length", cd_raw.get("period_length", 5)),
    )

    # ── Analytics ──
    an_raw = raw.get("analytics") or {}
    ranges_raw = an_raw.get("ranges") or {}
    if not ranges_raw:
        errors.append("'analytics.ranges' section is missing or empty")

    ranges: dict[str, RangeSpec] = {}
    for token, spec in ranges_raw.items():
        if not isinstance(spec, dict):
            errors.append(f"analytics.ranges.{token} must be a mapping with 'days' or 'years'")
            continue
        days = spec.get("days", 0)
        years = spec.get("years", 0)
        if not isinstance(days, int) or not isinstance(years, int) or days < 0 or years < 0:
            errors.append(f"analytics.ranges.{token} must use non-negative integers")
            continue
        if days == 0 and years == 0:
            errors.append(f"analytics.ranges.{token} spans no time")
            continue
        ranges[str(token)] = RangeSpec(days=days, years=years)

    default_range = str(an_raw.get("default_range", "30d"))
    if ranges and default_range not in ranges:
        errors.append(f"analytics.default_range {default_range!r} is not a configured range")

    boundaries = an_raw.get("age_boundaries", [18, 25, 30, 35, 40, 45, 50])
    if (
        not isinstance(boundaries, list)
        or len(boundaries) < 2
        or any(isinstance(b, bool) or not isinstance(b, (int, float)) for b in boundaries)
        or any(a >= b for a, b in zip(boundaries, boundaries[1:]))
    ):
        errors.append("analytics.age_boundaries must be a strictly ascending list of 2+ numbers")
        boundaries = [18, 25, 30, 35, 40, 45, 50]

    analytics = AnalyticsConfig(
        default_range=default_range,
        ranges=ranges,
        top_n=_positive("analytics", "top_n", an_raw.get("top_n", 10)),
        age_boundaries=list(boundaries),
        histogram_sentinel=str(an_raw.get("histogram_sentinel", "50+")),
        histogram_label_width=_positive(
            "analytics", "histogram_label_width", an_raw.get("histogram_label_width", 4)
        ),
        active_user_days=_positive(
            "analytics", "active_user_days", an_raw.get("active_user_days", 30)
        ),
    )

    # ── Collections / fields ──
    col_raw = raw.get("collections") or {}
    collections = CollectionsConfig(
        **{k: str(v) for k, v in col_raw.items() if k in CollectionsConfig.__dataclass_fields__}
    )
    fld_raw = raw.get("fields") or {}
    fields = FieldsConfig(
        **{k: str(v) for k, v in fld_raw.items() if k in FieldsConfig.__dataclass_fields__}
    )

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        defaults=defaults,
        analytics=analytics,
        collections=collections,
        fields=fields,
        _raw=raw,
    )


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled cycle_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | None = None) -> EngineConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails the old config is retained and the error re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
