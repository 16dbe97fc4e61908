"""Shared configuration loader for the DVITA client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".dvita.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

DEFAULT_RPC_PORT = 10332
DEFAULT_RPC_TIMEOUT = 30.0

# CNR resolver deployment (0x297801f069dd9fa340f8abb7274b2ae40ff8466b).
DEFAULT_NAMING_CONTRACT = "NVhCWHzmB4pRKsLzaBSyU4uxddgsvUsX9V"
DEFAULT_SOCIAL_LEDGER_CONTRACT = "0x4fed42809f613c0176fec151e7766e0e6aa1c9a8"
DEFAULT_GAS_CONTRACT = "0xd2a4cff31913016155e38e474a2c06d08be276cf"
DEFAULT_ADDRESS_VERSION = 0x35
# 20 GAS expressed in its smallest unit (8 decimals).
DEFAULT_TEST_MODE_GAS = 20 * 10**8
DEFAULT_PROXY_TRANSFER_MAX_GAS = 20 * 10**8


@dataclass
class RPCConfig:
    """Configuration container for ledger node RPC connection details."""

    host: str = "127.0.0.1"
    port: int = DEFAULT_RPC_PORT
    use_https: bool = False
    user: str | None = None
    password: str | None = None
    timeout: float = DEFAULT_RPC_TIMEOUT

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass
class WalletConfig:
    """Location of the node-side wallet opened before signing."""

    path: str | None = None
    password: str | None = None


@dataclass
class ContractConfig:
    """Well-known contracts and gas ceilings used by the client."""

    naming_contract: str = DEFAULT_NAMING_CONTRACT
    social_ledger_contract: str = DEFAULT_SOCIAL_LEDGER_CONTRACT
    gas_contract: str = DEFAULT_GAS_CONTRACT
    address_version: int = DEFAULT_ADDRESS_VERSION
    test_mode_gas: int = DEFAULT_TEST_MODE_GAS
    proxy_transfer_max_gas: int = DEFAULT_PROXY_TRANSFER_MAX_GAS


@dataclass
class ClientConfig:
    rpc: RPCConfig = field(default_factory=RPCConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    contracts: ContractConfig = field(default_factory=ContractConfig)


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
        raise ConfigurationError(f"Expected {path} to contain a YAML object")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, source: str, label: str = "port") -> int | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        base = 16 if raw.lower().startswith("0x") else 10
        try:
            return int(raw, base)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid {label} in {source}: {raw}") from exc
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {label} in {source}: {raw}") from exc


def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        timeout = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}")
    return timeout


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    if not raw:
        return None, None, None
    parsed = urlparse(raw)
    if not parsed.scheme and not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    host = parsed.hostname or None
    port = parsed.port
    use_https = parsed.scheme.lower() == "https" if parsed.scheme else None
    return host, port, use_https


def _load_rpc_section(
    rpc_section: Mapping[str, Any],
    env_map: Mapping[str, str],
    override_map: Mapping[str, Any],
    path: Path,
) -> RPCConfig:
    env_endpoint = env_map.get("DVITA_RPC_ENDPOINT") or env_map.get("DVITA_RPC_URL")
    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(override_map.get("endpoint"), env_endpoint, rpc_section.get("endpoint"))
    )

    resolved_host = _first_value(
        override_map.get("host"),
        endpoint_host,
        env_map.get("DVITA_RPC_HOST"),
        rpc_section.get("host"),
        "127.0.0.1",
    )
    resolved_port = _first_value(
        _coerce_int(override_map.get("port"), source="overrides"),
        endpoint_port,
        _coerce_int(env_map.get("DVITA_RPC_PORT"), source="environment"),
        _coerce_int(rpc_section.get("port"), source=f"{path} rpc.port"),
        DEFAULT_RPC_PORT,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        _coerce_bool(env_map.get("DVITA_RPC_USE_HTTPS")),
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )
    resolved_timeout = _first_value(
        _coerce_timeout(override_map.get("timeout"), source="overrides"),
        _coerce_timeout(env_map.get("DVITA_RPC_TIMEOUT"), source="environment"),
        _coerce_timeout(rpc_section.get("timeout"), source=f"{path} rpc.timeout"),
        DEFAULT_RPC_TIMEOUT,
    )
    resolved_user = _first_value(
        override_map.get("user"), env_map.get("DVITA_RPC_USER"), rpc_section.get("user")
    )
    resolved_password = _first_value(
        override_map.get("password"),
        env_map.get("DVITA_RPC_PASSWORD"),
        rpc_section.get("password"),
    )
    if bool(resolved_user) != bool(resolved_password):
        raise ConfigurationError(
            "RPC basic auth needs both a user and a password (DVITA_RPC_USER/DVITA_RPC_PASSWORD)"
        )

    return RPCConfig(
        host=resolved_host,
        port=resolved_port,
        use_https=bool(resolved_use_https),
        user=resolved_user or None,
        password=resolved_password or None,
        timeout=resolved_timeout,
    )


def _load_contract_section(section: Mapping[str, Any], path: Path) -> ContractConfig:
    defaults = ContractConfig()
    return ContractConfig(
        naming_contract=str(section.get("naming", defaults.naming_contract)),
        social_ledger_contract=str(
            section.get("social_ledger", defaults.social_ledger_contract)
        ),
        gas_contract=str(section.get("gas", defaults.gas_contract)),
        address_version=_first_value(
            _coerce_int(
                section.get("address_version"),
                source=f"{path} contracts.address_version",
                label="address version",
            ),
            defaults.address_version,
        ),
        test_mode_gas=_first_value(
            _coerce_int(
                section.get("test_mode_gas"),
                source=f"{path} contracts.test_mode_gas",
                label="gas amount",
            ),
            defaults.test_mode_gas,
        ),
        proxy_transfer_max_gas=_first_value(
            _coerce_int(
                section.get("proxy_transfer_max_gas"),
                source=f"{path} contracts.proxy_transfer_max_gas",
                label="gas amount",
            ),
            defaults.proxy_transfer_max_gas,
        ),
    )


def load_client_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ClientConfig:
    """Load client configuration from environment variables and optional YAML.

    ``overrides`` only applies to the ``rpc`` section; it carries values taken
    from command-line flags and wins over both the environment and the file.
    """

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = _section(file_config, "rpc", path)
    wallet_section = _section(file_config, "wallet", path)
    contract_section = _section(file_config, "contracts", path)

    rpc = _load_rpc_section(rpc_section, env_map, dict(overrides or {}), path)
    wallet = WalletConfig(
        path=_first_value(env_map.get("DVITA_WALLET_PATH"), wallet_section.get("path")),
        password=_first_value(
            env_map.get("DVITA_WALLET_PASSWORD"), wallet_section.get("password")
        ),
    )
    if wallet.path and not wallet.password:
        raise ConfigurationError(
            "A wallet path was configured without a password; set DVITA_WALLET_PASSWORD"
        )
    contracts = _load_contract_section(contract_section, path)
    if contracts.test_mode_gas <= 0 or contracts.proxy_transfer_max_gas <= 0:
        raise ConfigurationError("Gas ceilings must be positive")

    return ClientConfig(rpc=rpc, wallet=wallet, contracts=contracts)
