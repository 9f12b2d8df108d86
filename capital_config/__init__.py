"""
capital_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.  Returns a frozen ``LedgerConfig``.

Architecture position:
    Configuration -- sits above ``capital_kernel`` and ``capital_engines``
    and below ``capital_services``.  The kernel and engines MUST NEVER
    import from ``capital_config``; the service layer translates config
    values (windows, pegs, thresholds) into explicit engine arguments.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file does not exist.
    - ``ValueError`` -- a value is missing or invalid.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CAPITAL_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying balancing and usage results to the configuration that
    governed them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from capital_config.loader import load_config
from capital_config.schema import FxPeg, LedgerConfig

_logger = logging.getLogger("capital_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.  Defaults to
            capital_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_DIR / _DEFAULT_CONFIG_FILE
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    config = load_config(path)

    _logger.info(
        "CAPITAL_CONFIG_TRACE",
        extra={
            "trace_type": "CAPITAL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "reporting_currency": config.reporting_currency,
            "leftover_policy": config.leftover_policy.value,
            "fx_peg_count": len(config.fx_pegs),
        },
    )
    return config


__all__ = ["FxPeg", "LedgerConfig", "get_active_config"]
