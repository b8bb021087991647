"""Shared configuration loader for the indexer and node clients."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".runic.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

DEFAULT_ORD_BASE_URL = "http://127.0.0.1:4000"
DEFAULT_ORD_PUBLIC_URL = "https://ordinals.com"


@dataclass
class OrdConfig:
    """Connection details for the ord indexing service."""

    base_url: str = DEFAULT_ORD_BASE_URL
    public_url: str = DEFAULT_ORD_PUBLIC_URL
    timeout: float = 30.0
    max_retries: int = 5
    backoff_seconds: float = 0.5


@dataclass
class RPCConfig:
    """Configuration container for Bitcoin Core RPC connection details."""

    user: str
    password: str
    host: str = "127.0.0.1"
    port: int = 8332
    use_https: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )
    return path, explicit_path


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
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
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


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
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


def _normalize_url(raw: str, *, source: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(f"Invalid URL in {source}: {raw}")
    return raw.rstrip("/")


def load_ord_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> OrdConfig:
    """Load ord indexer settings from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    ord_section = _section(_load_config_file(path, required=explicit_path), "ord", path)
    override_map = dict(overrides or {})

    base_url = _first_value(
        override_map.get("base_url"),
        env_map.get("ORD_BASE_URL"),
        ord_section.get("base_url"),
        DEFAULT_ORD_BASE_URL,
    )
    public_url = _first_value(
        override_map.get("public_url"),
        env_map.get("ORD_PUBLIC_URL"),
        ord_section.get("public_url"),
        DEFAULT_ORD_PUBLIC_URL,
    )
    timeout = _first_value(
        _coerce_float(override_map.get("timeout"), source="overrides"),
        _coerce_float(env_map.get("ORD_TIMEOUT"), source="environment"),
        _coerce_float(ord_section.get("timeout"), source=f"{path} ord.timeout"),
        30.0,
    )
    max_retries = _first_value(
        _coerce_int(override_map.get("max_retries"), source="overrides"),
        _coerce_int(env_map.get("ORD_MAX_RETRIES"), source="environment"),
        _coerce_int(ord_section.get("max_retries"), source=f"{path} ord.max_retries"),
        5,
    )
    backoff_seconds = _first_value(
        _coerce_float(override_map.get("backoff_seconds"), source="overrides"),
        _coerce_float(env_map.get("ORD_BACKOFF_SECONDS"), source="environment"),
        _coerce_float(ord_section.get("backoff_seconds"), source=f"{path} ord.backoff_seconds"),
        0.5,
    )

    if timeout <= 0:
        raise ConfigurationError(f"ord timeout must be positive, got {timeout}")
    if max_retries < 1:
        raise ConfigurationError(f"ord max_retries must be at least 1, got {max_retries}")
    if backoff_seconds < 0:
        raise ConfigurationError(f"ord backoff_seconds must not be negative, got {backoff_seconds}")

    return OrdConfig(
        base_url=_normalize_url(base_url, source="ord base_url"),
        public_url=_normalize_url(public_url, source="ord public_url"),
        timeout=timeout,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
    )


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load Bitcoin Core RPC configuration from environment variables and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    rpc_section = _section(_load_config_file(path, required=explicit_path), "rpc", path)
    override_map = dict(overrides or {})

    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(
            override_map.get("endpoint"),
            env_map.get("BTC_RPC_ENDPOINT"),
            rpc_section.get("endpoint"),
        )
    )

    resolved_user = _first_value(
        override_map.get("user"), env_map.get("BTC_RPC_USER"), rpc_section.get("user")
    )
    resolved_password = _first_value(
        override_map.get("password"), env_map.get("BTC_RPC_PASSWORD"), rpc_section.get("password")
    )
    if not resolved_user or not resolved_password:
        raise ConfigurationError(
            "RPC credentials must be provided via BTC_RPC_* environment variables or a config file"
        )

    resolved_host = _first_value(
        override_map.get("host"),
        endpoint_host,
        env_map.get("BTC_RPC_HOST"),
        rpc_section.get("host"),
        "127.0.0.1",
    )
    resolved_port = _first_value(
        _coerce_int(override_map.get("port"), source="overrides"),
        endpoint_port,
        _coerce_int(env_map.get("BTC_RPC_PORT"), source="environment"),
        _coerce_int(rpc_section.get("port"), source=f"{path} rpc.port"),
        8332,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        _coerce_bool(env_map.get("BTC_RPC_USE_HTTPS")),
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )

    return RPCConfig(
        user=resolved_user,
        password=resolved_password,
        host=resolved_host,
        port=resolved_port,
        use_https=bool(resolved_use_https),
    )
