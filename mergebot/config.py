"""Repository configuration loaded from a TOML file in the repository root."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from mergebot.labels import LabelModification, LabelTrigger

CONFIG_FILE_PATH = "mergebot.toml"

DEFAULT_TIMEOUT = timedelta(seconds=3600)

_MAX_U64 = 2**64 - 1

_TRIGGERS = {
    "approve": LabelTrigger.APPROVED,
    "unapprove": LabelTrigger.UNAPPROVED,
    "try": LabelTrigger.TRY_BUILD_STARTED,
    "try_succeed": LabelTrigger.TRY_BUILD_SUCCEEDED,
    "try_failed": LabelTrigger.TRY_BUILD_FAILED,
}


class ConfigError(ValueError):
    """The repository configuration is invalid."""


def _parse_seconds(value: Any, key: str) -> timedelta:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _MAX_U64:
        raise ConfigError(f"`{key}` must be a non-negative integer number of seconds")
    try:
        return timedelta(seconds=value)
    except OverflowError as error:
        raise ConfigError(f"`{key}` is too large") from error


def _parse_modification(value: Any) -> LabelModification:
    if not isinstance(value, str):
        raise ConfigError("Label modification must be a string")
    if len(value.encode("utf-8")) < 2:
        raise ConfigError(
            "Label modification have at least two characters and start with `+` or `-`"
        )
    if value.startswith("+"):
        return LabelModification.add(value[1:])
    if value.startswith("-"):
        return LabelModification.remove(value[1:])
    raise ConfigError("Label modification must start with `+` or `-`")


def _parse_labels(data: Any) -> dict[LabelTrigger, list[LabelModification]]:
    if not isinstance(data, Mapping):
        raise ConfigError("`labels` must be a table")
    triggers: dict[str, list[LabelModification]] = {}
    for key, values in data.items():
        if key not in _TRIGGERS:
            expected = ", ".join(f"`{name}`" for name in _TRIGGERS)
            raise ConfigError(f"unknown label trigger `{key}`, expected one of {expected}")
        if not isinstance(values, list):
            raise ConfigError(f"labels for `{key}` must be a list")
        triggers[key] = [_parse_modification(value) for value in values]

    # Approval labels are reverted on unapproval unless configured explicitly.
    if "approve" in triggers:
        triggers.setdefault("unapprove", [m.inverted() for m in triggers["approve"]])

    return {_TRIGGERS[key]: mods for key, mods in triggers.items()}


@dataclass
class RepositoryConfig:
    """Configuration of a single repository."""

    timeout: timedelta = DEFAULT_TIMEOUT
    labels: dict[LabelTrigger, list[LabelModification]] = field(default_factory=dict)
    min_ci_time: timedelta | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RepositoryConfig:
        """Build a configuration from parsed TOML data; unknown keys are ignored."""
        if not isinstance(data, Mapping):
            raise ConfigError("configuration must be a table")
        timeout = (
            _parse_seconds(data["timeout"], "timeout") if "timeout" in data else DEFAULT_TIMEOUT
        )
        labels = _parse_labels(data["labels"]) if "labels" in data else {}
        raw_min_ci_time = data.get("min_ci_time")
        min_ci_time = (
            None if raw_min_ci_time is None else _parse_seconds(raw_min_ci_time, "min_ci_time")
        )
        return cls(timeout=timeout, labels=labels, min_ci_time=min_ci_time)


def load_config(content: str) -> RepositoryConfig:
    """Parse a configuration from TOML text."""
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as error:
        raise ConfigError(f"Invalid TOML: {error}") from error
    return RepositoryConfig.from_mapping(data)