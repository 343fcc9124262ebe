"""
Configuration loader (``sme_config.loader``).

Responsibility
--------------
Reads YAML files, merges override layers onto the shipped defaults, and
parses the result into the frozen ``sme_config.schema`` dataclasses.  The
public entry point is ``sme_config.get_active_config()``; this module is
its tooling.

Invariants enforced
-------------------
* Unknown section or key names raise ``ValueError``; a typo never falls
  back silently to a default.
* Money percentages are parsed as ``Decimal`` from their string form.
* ``compute_checksum`` is deterministic for equal merged data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or ill-typed values  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from sme_config.schema import (
    AllocationSettings,
    ChequeStockSettings,
    DatabaseSettings,
    FeeSettings,
    KernelSettings,
    LoggingSettings,
    QuerySettings,
)

_SECTIONS = {
    "database": DatabaseSettings,
    "fees": FeeSettings,
    "allocation": AllocationSettings,
    "query": QuerySettings,
    "cheque_stock": ChequeStockSettings,
    "logging": LoggingSettings,
}
_TOP_LEVEL_KEYS = {"config_id", "version", *_SECTIONS}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` onto a copy of ``base``."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _decimal(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name}: {value!r} is not a decimal") from exc
    if not result.is_finite():
        raise ValueError(f"{name}: {value!r} is not finite")
    return result


def _positive(value: Any, name: str, cast=float):
    try:
        result = cast(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}: {value!r} is not a number") from exc
    if result <= 0:
        raise ValueError(f"{name}: must be greater than 0, got {value!r}")
    return result


def _check_keys(section: str, data: Mapping[str, Any], cls) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {', '.join(unknown)}")


def parse_database(data: Mapping[str, Any]) -> DatabaseSettings:
    _check_keys("database", data, DatabaseSettings)
    url = str(data.get("url", DatabaseSettings.url)).strip()
    if not url:
        raise ValueError("database.url must not be empty")
    return DatabaseSettings(
        url=url,
        echo=bool(data.get("echo", False)),
        busy_timeout_seconds=_positive(
            data.get("busy_timeout_seconds", 30.0), "database.busy_timeout_seconds"
        ),
        pool_size=_positive(data.get("pool_size", 5), "database.pool_size", int),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_fees(data: Mapping[str, Any]) -> FeeSettings:
    _check_keys("fees", data, FeeSettings)
    market = _decimal(data.get("market_fee_percent", "0.70"), "fees.market_fee_percent")
    commission = _decimal(data.get("commission_percent", "2.00"), "fees.commission_percent")
    for name, value in (("market_fee_percent", market), ("commission_percent", commission)):
        if value < 0 or value > 100:
            raise ValueError(f"fees.{name}: must be between 0 and 100, got {value}")
    return FeeSettings(market_fee_percent=market, commission_percent=commission)


def parse_allocation(data: Mapping[str, Any]) -> AllocationSettings:
    _check_keys("allocation", data, AllocationSettings)
    backoff = float(data.get("retry_backoff_seconds", 0.05))
    if backoff < 0:
        raise ValueError("allocation.retry_backoff_seconds must not be negative")
    return AllocationSettings(
        lock_timeout_seconds=_positive(
            data.get("lock_timeout_seconds", 10.0), "allocation.lock_timeout_seconds"
        ),
        retry_attempts=_positive(data.get("retry_attempts", 3), "allocation.retry_attempts", int),
        retry_backoff_seconds=backoff,
    )


def parse_query(data: Mapping[str, Any]) -> QuerySettings:
    _check_keys("query", data, QuerySettings)
    return QuerySettings(page_size=_positive(data.get("page_size", 50), "query.page_size", int))


def parse_cheque_stock(data: Mapping[str, Any]) -> ChequeStockSettings:
    _check_keys("cheque_stock", data, ChequeStockSettings)
    return ChequeStockSettings(
        width_mm=_positive(data.get("width_mm", 202.0), "cheque_stock.width_mm"),
        height_mm=_positive(data.get("height_mm", 92.0), "cheque_stock.height_mm"),
        leaf_number_width=_positive(
            data.get("leaf_number_width", 6), "cheque_stock.leaf_number_width", int
        ),
    )


def parse_logging(data: Mapping[str, Any]) -> LoggingSettings:
    _check_keys("logging", data, LoggingSettings)
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level: unknown level {level!r}")
    return LoggingSettings(level=level)


_PARSERS = {
    "database": parse_database,
    "fees": parse_fees,
    "allocation": parse_allocation,
    "query": parse_query,
    "cheque_stock": parse_cheque_stock,
    "logging": parse_logging,
}


def parse_settings(data: Mapping[str, Any]) -> KernelSettings:
    """
    Parse merged configuration data into ``KernelSettings``.

    The checksum is computed over ``data`` as given.
    """
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")

    sections = {}
    for name, parser in _PARSERS.items():
        section = data.get(name) or {}
        if not isinstance(section, Mapping):
            raise ValueError(f"Section '{name}' must be a mapping")
        sections[name] = parser(section)

    return KernelSettings(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(dict(data)),
        **sections,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
