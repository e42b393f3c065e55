"""Runtime settings read from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from visubridge.core.errors import ConfigError

DEFAULT_MAPPINGS_FILE = "device_mappings.yaml"
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_LOGIN_MAX_POLLS = 180


@dataclass(frozen=True)
class Settings:
    base_url: str
    username: str = ""
    password: str = field(default="", repr=False)
    mappings_path: Path = Path(DEFAULT_MAPPINGS_FILE)
    timeout_s: float = DEFAULT_TIMEOUT_S
    login_max_polls: int = DEFAULT_LOGIN_MAX_POLLS
    verify_tls: bool = False


def _parse_float(value: str, *, name: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got '{value}'") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _parse_int(value: str, *, name: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{value}'") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _parse_bool(value: str, *, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{name} must be boolean true/false, got '{value}'")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    base_url = env.get("SMARTHOME_BASE_URL", "").strip()
    if not base_url:
        raise ConfigError("SMARTHOME_BASE_URL is not set")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"SMARTHOME_BASE_URL must be an http(s) URL, got '{base_url}'")

    return Settings(
        base_url=base_url.rstrip("/"),
        username=env.get("SMARTHOME_USERNAME", ""),
        password=env.get("SMARTHOME_PASSWORD", ""),
        mappings_path=Path(env.get("SMARTHOME_MAPPINGS", DEFAULT_MAPPINGS_FILE)),
        timeout_s=_parse_float(env.get("SMARTHOME_TIMEOUT_S", str(DEFAULT_TIMEOUT_S)), name="SMARTHOME_TIMEOUT_S"),
        login_max_polls=_parse_int(
            env.get("SMARTHOME_LOGIN_MAX_POLLS", str(DEFAULT_LOGIN_MAX_POLLS)),
            name="SMARTHOME_LOGIN_MAX_POLLS",
        ),
        verify_tls=_parse_bool(env.get("SMARTHOME_VERIFY_TLS", "false"), name="SMARTHOME_VERIFY_TLS"),
    )
