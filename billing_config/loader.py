"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads the billing YAML file and parses it into the frozen dataclasses of
``billing_config.schema``.  Runtime callers go through
``billing_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Malformed values raise ``ConfigurationError`` naming the key.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad value (unknown currency, negative rate, bad time)  ->
  ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    BillingConfig,
    InclusionConfig,
    IntervalWindowDef,
    ScheduledJobDef,
    SchedulerConfig,
)
from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(key, str(value), "expected a decimal number")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(key, str(value), "expected a decimal number") from e


def parse_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(key, str(value), "expected a positive integer")
    return value


def parse_time_of_day(key: str, value: Any) -> time:
    """Parse ``HH:MM`` (or a ``time``) into a time of day."""
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value)
        except ValueError as e:
            raise ConfigurationError(key, value, "expected HH:MM") from e
    raise ConfigurationError(key, str(value), "expected HH:MM")


def parse_inclusion(data: dict[str, Any]) -> InclusionConfig:
    return InclusionConfig(
        excluded_statuses=tuple(data.get("excluded_statuses", ("hold", "block"))),
        excluded_types=tuple(data.get("excluded_types", ("employee",))),
    )


def parse_window(data: dict[str, Any]) -> IntervalWindowDef:
    return IntervalWindowDef(
        starts_at=parse_time_of_day("scheduler.windows.starts_at", data["starts_at"]),
        interval_seconds=parse_positive_int(
            "scheduler.windows.interval_seconds", data["interval_seconds"],
        ),
    )


def parse_scheduler(data: dict[str, Any]) -> SchedulerConfig:
    windows = tuple(
        sorted(
            (parse_window(w) for w in data.get("windows", [])),
            key=lambda w: w.starts_at,
        )
    )
    starts = [w.starts_at for w in windows]
    if len(set(starts)) != len(starts):
        raise ConfigurationError(
            "scheduler.windows", str(starts), "duplicate window start time",
        )
    return SchedulerConfig(
        enabled=bool(data.get("enabled", True)),
        tick_interval_seconds=parse_positive_int(
            "scheduler.tick_interval_seconds",
            data.get("tick_interval_seconds", 30),
        ),
        windows=windows,
        jobs=tuple(
            ScheduledJobDef(name=j["name"], enabled=bool(j.get("enabled", True)))
            for j in data.get("jobs", [])
        ),
    )


def parse_config(data: dict[str, Any], checksum: str = "") -> BillingConfig:
    """Parse a raw configuration dict into a ``BillingConfig``."""
    currency = str(data.get("currency", "JPY")).upper()
    if not CurrencyRegistry.is_valid(currency):
        raise ConfigurationError("currency", currency, "unknown ISO 4217 code")

    default_tax_rate = parse_decimal(
        "default_tax_rate", data.get("default_tax_rate", "0.10"),
    )
    if default_tax_rate < 0:
        raise ConfigurationError(
            "default_tax_rate", str(default_tax_rate), "must not be negative",
        )

    tolerance = None
    if data.get("rounding_tolerance") is not None:
        tolerance = parse_decimal("rounding_tolerance", data["rounding_tolerance"])
        if tolerance < 0:
            raise ConfigurationError(
                "rounding_tolerance", str(tolerance), "must not be negative",
            )

    return BillingConfig(
        currency=currency,
        default_tax_rate=default_tax_rate,
        rounding_tolerance=tolerance,
        inclusion=parse_inclusion(data.get("inclusion", {})),
        fetch_batch_size=parse_positive_int(
            "fetch_batch_size", data.get("fetch_batch_size", 1000),
        ),
        validate_rollups=bool(data.get("validate_rollups", False)),
        cache_facts=bool(data.get("cache_facts", False)),
        database_url=str(data.get("database_url", "sqlite:///billing.db")),
        export_directory=str(data.get("export_directory", "exports")),
        scheduler=parse_scheduler(data.get("scheduler", {})),
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
