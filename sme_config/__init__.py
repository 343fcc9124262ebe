"""
sme_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the one way to obtain ``KernelSettings``.
    It loads the shipped ``defaults.yaml``, overlays an optional site file
    and an optional overrides mapping, validates, and returns a frozen
    settings object.

Architecture position:
    Configuration -- sits above ``sme_kernel``.  The kernel never imports
    ``sme_config``; ``sme_config.bridges`` turns settings into kernel
    objects (Database, allocator, issuance service).

Failure modes:
    - ``FileNotFoundError`` -- the site file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful call emits an ``SME_CONFIG_TRACE`` log entry with the
    config id, version and checksum of the merged configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from sme_config.loader import load_yaml_file, merge, parse_settings
from sme_config.schema import KernelSettings

_logger = logging.getLogger("sme_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> KernelSettings:
    """
    Load and validate the active configuration.

    Args:
        path: Optional site YAML file merged over the shipped defaults.
        overrides: Optional mapping merged last (tests, CLI flags).

    Returns:
        Frozen ``KernelSettings``.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        ValueError: if validation fails.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
        sources.append(str(path))
    if overrides:
        data = merge(data, overrides)
        sources.append("<overrides>")

    settings = parse_settings(data)

    _logger.info(
        "SME_CONFIG_TRACE",
        extra={
            "trace_type": "SME_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "sources": sources,
            "database_dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings


__all__ = ["KernelSettings", "get_active_config"]
