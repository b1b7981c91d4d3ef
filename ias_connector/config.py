from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os
import yaml

DEFAULT_DESTINATION = "IAS_DEST"


@dataclass(frozen=True)
class Settings:
    # Destination (IAS)
    destination: str = DEFAULT_DESTINATION
    base_url: str | None = None
    username: str | None = None
    password: str | None = None
    destinations: dict[str, dict] = field(default_factory=dict)

    # HTTP
    timeout_seconds: float = 20.0
    retries: int = 0
    retry_backoff_seconds: float = 0.5
    tls_skip_verify: bool = False
    ca_file: str | None = None

    # Directory
    cache_ttl_seconds: float = 300.0

    # Paths / logging
    log_dir: str = "./logs"
    report_dir: str = "./reports"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


_ENV_NAMES = {
    "destination": "IAS_DESTINATION",
    "base_url": "IAS_BASE_URL",
    "username": "IAS_USERNAME",
    "password": "IAS_PASSWORD",
    "timeout_seconds": "IAS_TIMEOUT_SECONDS",
    "retries": "IAS_RETRIES",
    "retry_backoff_seconds": "IAS_RETRY_BACKOFF_SECONDS",
    "tls_skip_verify": "IAS_TLS_SKIP_VERIFY",
    "ca_file": "IAS_CA_FILE",
    "cache_ttl_seconds": "IAS_CACHE_TTL_SECONDS",
    "log_dir": "IAS_LOG_DIR",
    "report_dir": "IAS_REPORT_DIR",
    "log_level": "IAS_LOG_LEVEL",
}

_INT_FIELDS = {"retries"}
_FLOAT_FIELDS = {"timeout_seconds", "retry_backoff_seconds", "cache_ttl_seconds"}
_BOOL_FIELDS = {"tls_skip_verify"}


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parse_bool(v: str) -> bool:
    vv = v.lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def _parse_env_value(key: str, raw: str):
    if key in _INT_FIELDS:
        return int(raw)
    if key in _FLOAT_FIELDS:
        return float(raw)
    if key in _BOOL_FIELDS:
        return parse_bool(raw)
    return raw


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    merged: dict = {}
    for key in _ENV_NAMES:
        merged[key] = cfg.get(key, getattr(defaults, key))

    destinations = cfg.get("destinations") or {}
    if not isinstance(destinations, dict):
        raise ValueError("config: 'destinations' must be a mapping")

    # 2) env
    env = {key: _env_get(name) for key, name in _ENV_NAMES.items()}
    if any(v is not None for v in env.values()):
        sources.append("env")
    for key, raw in env.items():
        if raw is not None:
            merged[key] = _parse_env_value(key, raw)

    # 3) CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    settings = Settings(
        destination=merged["destination"] or DEFAULT_DESTINATION,
        base_url=merged["base_url"],
        username=merged["username"],
        password=merged["password"],
        destinations={str(name): dict(value or {}) for name, value in destinations.items()},
        timeout_seconds=float(merged["timeout_seconds"]),
        retries=int(merged["retries"]),
        retry_backoff_seconds=float(merged["retry_backoff_seconds"]),
        tls_skip_verify=bool(merged["tls_skip_verify"]),
        ca_file=merged["ca_file"],
        cache_ttl_seconds=float(merged["cache_ttl_seconds"]),
        log_dir=merged["log_dir"],
        report_dir=merged["report_dir"],
        log_level=merged["log_level"],
    )

    return LoadedSettings(settings=settings, sources_used=sources)
