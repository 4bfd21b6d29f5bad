"""Load, validate, and hot-reload the RedDays statistics tuning file.

The tuning file lives in ``stats_config.yaml`` alongside this module.  It is
loaded once and cached.  Call ``reload_stats_config()`` to re-read from disk.

Usage::

    from reddays.stats_config import get_stats_config

    config = get_stats_config()
    config.cycle_defaults.average_cycle_length   # 28
    config.period_max_cycle_day                   # 7
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("reddays.stats_config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "stats_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleDefaults:
    """Metrics reported when there is not enough data to compute them."""

    average_cycle_length: int = 28
    shortest_cycle: int = 21
    longest_cycle: int = 35
    average_period_days: int = 5


@dataclass
class StatsConfig:
    """Complete, validated statistics configuration.

    Attributes:
        version:                 Config schema version string.
        cycle_defaults:          Fallback metrics for empty or single-record sets.
        period_max_cycle_day:    Highest cycle_day still counted as a period day.
        history_average_length:  average_length given to a freshly created history.
        initial_accuracy:        prediction_accuracy of a freshly created snapshot.
        export_format_version:   Version tag written into settings exports.
    """

    version: str
    cycle_defaults: CycleDefaults
    period_max_cycle_day: int = 7
    history_average_length: int = 28
    initial_accuracy: float = 0.0
    export_format_version: str = "1.0"
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when stats_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Stats config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> StatsConfig:
    """Validate the raw YAML dict and construct a StatsConfig.

    Every problem is collected before raising so a broken file can be fixed
    in one pass.
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError("stats_config.yaml must contain a mapping at the top level")

    errors: list[str] = []

    def _positive_int(section: dict, key: str, default: int, where: str) -> int:
        value = section.get(key, default)
        try:
            number = int(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be an integer, got {value!r}")
            return default
        if number <= 0:
            errors.append(f"{where}.{key} must be positive, got {number}")
        return number

    def _section(key: str) -> dict[str, Any]:
        section = raw.get(key) or {}
        if not isinstance(section, dict):
            errors.append(f"'{key}' must be a mapping")
            return {}
        return section

    version = str(raw.get("version", "1.0"))

    # ── Cycle defaults ──
    cd_raw = _section("cycle_defaults")
    cycle_defaults = CycleDefaults(
        average_cycle_length=_positive_int(cd_raw, "average_cycle_length", 28, "cycle_defaults"),
        shortest_cycle=_positive_int(cd_raw, "shortest_cycle", 21, "cycle_defaults"),
        longest_cycle=_positive_int(cd_raw, "longest_cycle", 35, "cycle_defaults"),
        average_period_days=_positive_int(cd_raw, "average_period_days", 5, "cycle_defaults"),
    )
    if cycle_defaults.shortest_cycle > cycle_defaults.longest_cycle:
        errors.append(
            f"cycle_defaults.shortest_cycle ({cycle_defaults.shortest_cycle}) "
            f"exceeds longest_cycle ({cycle_defaults.longest_cycle})"
        )

    # ── Period ──
    period_max = _positive_int(_section("period"), "max_cycle_day", 7, "period")

    # ── History ──
    history_avg = _positive_int(_section("history"), "default_average_length", 28, "history")

    # ── Prediction ──
    pr_raw = _section("prediction")
    accuracy_raw = pr_raw.get("initial_accuracy", 0.0)
    try:
        initial_accuracy = float(accuracy_raw)
    except (TypeError, ValueError):
        errors.append(f"prediction.initial_accuracy must be a number, got {accuracy_raw!r}")
        initial_accuracy = 0.0
    else:
        if not (0.0 <= initial_accuracy <= 1.0):
            errors.append(
                f"prediction.initial_accuracy = {initial_accuracy} is out of range [0.0, 1.0]"
            )

    # ── Settings export ──
    export_version = str(_section("settings_export").get("format_version", "1.0"))

    if errors:
        raise ConfigValidationError(
            f"stats_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return StatsConfig(
        version=version,
        cycle_defaults=cycle_defaults,
        period_max_cycle_day=period_max,
        history_average_length=history_avg,
        initial_accuracy=initial_accuracy,
        export_format_version=export_version,
        _raw=raw,
    )


def load_stats_config(path: Path | None = None) -> StatsConfig:
    """Load and validate the stats config from disk.

    Args:
        path: Override path to YAML. Uses the bundled stats_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded stats config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: StatsConfig | None = None
_config_lock = threading.Lock()


def get_stats_config() -> StatsConfig:
    """Return the global StatsConfig singleton, loading it on first call.

    Honors ``Settings.stats_config_path`` when set.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                from reddays.config import get_settings

                _config = load_stats_config(get_settings().stats_config_path)
    return _config


def reload_stats_config(path: Path | None = None) -> StatsConfig:
    """Reload the stats config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.
    """
    global _config
    new_config = load_stats_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded stats config: %s → %s", old_version, new_config.version)
    return new_config
