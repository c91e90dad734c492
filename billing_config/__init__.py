"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    ``get_active_config()`` is the way to obtain configuration at runtime.
    Services and batch jobs receive the returned ``BillingConfig``; they do
    not read files or environment variables themselves.

Resolution order:
    1. explicit ``path`` argument
    2. ``BILLING_CONFIG_PATH`` environment variable
    3. the packaged ``defaults.yaml``

    ``DATABASE_URL``, when set, overrides ``database_url`` from the file.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- a value is malformed.

Every successful call emits a ``BILLING_CONFIG_TRACE`` log record carrying
the source path and checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from billing_config.loader import compute_checksum, load_yaml_file, parse_config
from billing_config.schema import (
    BillingConfig,
    InclusionConfig,
    IntervalWindowDef,
    ScheduledJobDef,
    SchedulerConfig,
)
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "BILLING_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """Load, validate and return the active billing configuration."""
    source = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULTS_PATH)
    data = load_yaml_file(source)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = {**data, "database_url": database_url}

    checksum = compute_checksum(data)
    config = parse_config(data, checksum=checksum)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "source": str(source),
            "checksum": checksum,
            "currency": config.currency,
            "validate_rollups": config.validate_rollups,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "InclusionConfig",
    "IntervalWindowDef",
    "ScheduledJobDef",
    "SchedulerConfig",
    "compute_checksum",
    "get_active_config",
]
