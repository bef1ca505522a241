"""Shared configuration loader for cann-registry."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .address import NETWORK_PREFIXES


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".cann_registry.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

ENV_PREFIX = "CANN_"
_CATEGORY_RE = re.compile(r"^[0-9a-fA-F]{64}$")

DEFAULT_TLD = ".bch"
DEFAULT_NETWORK = "mainnet"
DEFAULT_MIN_STARTING_BID = 10000
DEFAULT_MIN_BID_INCREASE_PERCENTAGE = 5
DEFAULT_MIN_WAIT_TIME = 4194306
DEFAULT_MAX_PLATFORM_FEE_PERCENTAGE = 50
DEFAULT_FEE_RATE = 2.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_ELECTRUM_URL = "http://127.0.0.1:50001"


@dataclass
class ElectrumConfig:
    """Connection details for an Electrum-protocol JSON-RPC endpoint."""

    url: str = DEFAULT_ELECTRUM_URL
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class RegistryConfig:
    """Parameters of one registry deployment plus the endpoints used to query it."""

    category: str
    tld: str = DEFAULT_TLD
    network: str = DEFAULT_NETWORK
    min_starting_bid: int = DEFAULT_MIN_STARTING_BID
    min_bid_increase_percentage: int = DEFAULT_MIN_BID_INCREASE_PERCENTAGE
    min_wait_time: int = DEFAULT_MIN_WAIT_TIME
    max_platform_fee_percentage: int = DEFAULT_MAX_PLATFORM_FEE_PERCENTAGE
    creator_incentive_address: str | None = None
    chaingraph_url: str | None = None
    fee_rate: float = DEFAULT_FEE_RATE
    artifacts_dir: Path | None = None
    electrum: ElectrumConfig = field(default_factory=ElectrumConfig)


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'registry' section")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ConfigurationError(f"Invalid integer in {source}: {raw}")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _coerce_float(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str | None, *, label: str) -> str | None:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid {label} URL: {raw}")
    return raw


def load_registry_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RegistryConfig:
    """Load registry configuration from overrides, ``CANN_*`` variables and optional YAML.

    Precedence is overrides, then environment, then the ``registry:`` and
    ``electrum:`` sections of the config file, then built-in defaults.
    """

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    registry_section = _section(file_config, "registry", path)
    electrum_section = _section(file_config, "electrum", path)
    override_map = dict(overrides or {})

    def pick(key: str) -> Any:
        return _first_value(
            override_map.get(key),
            env_map.get(f"{ENV_PREFIX}{key.upper()}"),
            registry_section.get(key),
        )

    def pick_int(key: str, default: int) -> int:
        return _first_value(
            _coerce_int(override_map.get(key), source="overrides"),
            _coerce_int(env_map.get(f"{ENV_PREFIX}{key.upper()}"), source=f"{ENV_PREFIX}{key.upper()}"),
            _coerce_int(registry_section.get(key), source=f"{path} registry.{key}"),
            default,
        )

    category = pick("category")
    if not category:
        raise ConfigurationError(
            "Registry token category must be provided via CANN_CATEGORY or the 'registry' section of a config file"
        )
    category = str(category)
    if not _CATEGORY_RE.match(category):
        raise ConfigurationError(f"Category must be 32 bytes of hex, got {category!r}")

    network = str(pick("network") or DEFAULT_NETWORK)
    if network not in NETWORK_PREFIXES:
        raise ConfigurationError(
            f"Unknown network {network!r}; expected one of {', '.join(sorted(NETWORK_PREFIXES))}"
        )

    fee_rate = _first_value(
        _coerce_float(override_map.get("fee_rate"), source="overrides"),
        _coerce_float(env_map.get(f"{ENV_PREFIX}FEE_RATE"), source=f"{ENV_PREFIX}FEE_RATE"),
        _coerce_float(registry_section.get("fee_rate"), source=f"{path} registry.fee_rate"),
        DEFAULT_FEE_RATE,
    )
    if fee_rate <= 0:
        raise ConfigurationError(f"fee_rate must be positive, got {fee_rate}")

    artifacts_dir = pick("artifacts_dir")

    electrum_url = _first_value(
        override_map.get("electrum_url"),
        env_map.get(f"{ENV_PREFIX}ELECTRUM_URL"),
        electrum_section.get("url"),
        DEFAULT_ELECTRUM_URL,
    )
    electrum_timeout = _first_value(
        _coerce_float(override_map.get("electrum_timeout"), source="overrides"),
        _coerce_float(env_map.get(f"{ENV_PREFIX}ELECTRUM_TIMEOUT"), source=f"{ENV_PREFIX}ELECTRUM_TIMEOUT"),
        _coerce_float(electrum_section.get("timeout"), source=f"{path} electrum.timeout"),
        DEFAULT_TIMEOUT,
    )

    return RegistryConfig(
        category=category.lower(),
        tld=str(pick("tld") or DEFAULT_TLD),
        network=network,
        min_starting_bid=pick_int("min_starting_bid", DEFAULT_MIN_STARTING_BID),
        min_bid_increase_percentage=pick_int(
            "min_bid_increase_percentage", DEFAULT_MIN_BID_INCREASE_PERCENTAGE
        ),
        min_wait_time=pick_int("min_wait_time", DEFAULT_MIN_WAIT_TIME),
        max_platform_fee_percentage=pick_int(
            "max_platform_fee_percentage", DEFAULT_MAX_PLATFORM_FEE_PERCENTAGE
        ),
        creator_incentive_address=pick("creator_incentive_address"),
        chaingraph_url=_validate_url(pick("chaingraph_url"), label="Chaingraph"),
        fee_rate=fee_rate,
        artifacts_dir=Path(artifacts_dir).expanduser() if artifacts_dir else None,
        electrum=ElectrumConfig(
            url=_validate_url(str(electrum_url), label="Electrum"),
            timeout=electrum_timeout,
        ),
    )
