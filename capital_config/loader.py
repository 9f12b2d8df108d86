"""
Configuration Loader (``capital_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``capital_config.schema.LedgerConfig``.  The single public entry point for
runtime config is ``capital_config.get_active_config()``.

Architecture position
---------------------
**Config layer**.  Imports kernel value types for validation only; the
kernel never imports from here.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; no silent
  defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from capital_config.schema import FxPeg, LedgerConfig
from capital_kernel.domain.currency import CurrencyRegistry, validate_unit
from capital_kernel.domain.envelopes import LeftoverPolicy
from capital_kernel.exceptions import CurrencyError
from capital_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Parse a Decimal from YAML.

    YAML floats are rejected; quote decimal values in configuration files
    so they are read exactly.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{field_name} must be a quoted decimal string, got {value!r}")
    if isinstance(value, (int, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"{field_name} is not a decimal: {value!r}") from None
        if not result.is_finite():
            raise ValueError(f"{field_name} must be finite, got {value!r}")
        return result
    raise ValueError(f"Cannot parse {field_name} from {value!r}")


def _parse_int(data: dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def parse_fx_peg(data: dict[str, Any]) -> FxPeg:
    """Parse an ``FxPeg`` from a dict with ``from``, ``to`` and ``rate``."""
    try:
        from_unit = validate_unit(data["from"])
        to_unit = validate_unit(data["to"])
    except KeyError as exc:
        raise ValueError(f"fx peg is missing {exc.args[0]!r}") from None
    except (CurrencyError, AttributeError, TypeError) as exc:
        raise ValueError(f"fx peg has an invalid unit: {exc}") from None
    if from_unit == to_unit:
        raise ValueError(f"fx peg must change units, got {from_unit} -> {to_unit}")
    rate = parse_decimal(data.get("rate"), "fx peg rate")
    if rate <= 0:
        raise ValueError(f"fx peg rate must be positive, got {rate}")
    return FxPeg(
        from_unit=from_unit,
        to_unit=to_unit,
        rate=rate,
        source=str(data.get("source", "peg")),
    )


def parse_ledger_config(data: dict[str, Any], checksum: str = "") -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from a dict.

    Preconditions:
        - ``data`` must contain ``config_id`` and ``reporting_currency``.
    Raises:
        ValueError: if a value is missing or invalid.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")
    for key in ("config_id", "reporting_currency"):
        if key not in data:
            raise ValueError(f"Configuration is missing required key {key!r}")

    reporting = str(data["reporting_currency"]).upper()
    if not CurrencyRegistry.is_valid(reporting):
        raise ValueError(f"reporting_currency is not an ISO 4217 code: {reporting!r}")

    try:
        policy = LeftoverPolicy(data.get("leftover_policy", LeftoverPolicy.SIGNED.value))
    except ValueError:
        raise ValueError(
            f"leftover_policy must be one of {[p.value for p in LeftoverPolicy]}, "
            f"got {data.get('leftover_policy')!r}"
        ) from None

    window = data.get("transfer_match_window_days")
    if window is not None:
        window = _parse_int(data, "transfer_match_window_days", 0, 0)

    threshold = parse_decimal(data.get("fee_only_threshold", "15"), "fee_only_threshold")
    if threshold < 0:
        raise ValueError(f"fee_only_threshold must be >= 0, got {threshold}")

    return LedgerConfig(
        config_id=str(data["config_id"]),
        version=_parse_int(data, "version", 1, 1),
        reporting_currency=reporting,
        leftover_policy=policy,
        transfer_match_window_days=window,
        fee_only_threshold=threshold,
        percent_places=_parse_int(data, "percent_places", 4, 0),
        recent_cycle_count=_parse_int(data, "recent_cycle_count", 12, 1),
        fx_pegs=tuple(parse_fx_peg(p) for p in data.get("fx_pegs") or ()),
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)


def load_config(path: Path) -> LedgerConfig:
    data = load_yaml_file(path)
    return parse_ledger_config(data, checksum=compute_checksum(data))
