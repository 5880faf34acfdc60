from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime knobs, read from FNRUN_* environment variables when constructed."""

    # Images / containers
    image_prefix: str = field(default_factory=lambda: _env_str("FNRUN_IMAGE_PREFIX", "fnrun-"))
    function_port: int = field(default_factory=lambda: _env_int("FNRUN_FUNCTION_PORT", 80))
    # Functions are published on loopback only; they are reachable through this process.
    loopback_host: str = field(default_factory=lambda: _env_str("FNRUN_LOOPBACK_HOST", "127.0.0.1"))
    stop_timeout_s: int = field(default_factory=lambda: _env_int("FNRUN_STOP_TIMEOUT_S", 0))
    remove_stopped: bool = field(default_factory=lambda: _env_bool("FNRUN_REMOVE_STOPPED", True))
    context_spool_bytes: int = field(default_factory=lambda: _env_int("FNRUN_CONTEXT_SPOOL_BYTES", 8 * 1024 * 1024))

    # Invocation
    invoke_timeout_s: float = field(default_factory=lambda: _env_float("FNRUN_INVOKE_TIMEOUT_S", 10.0))
    ready_timeout_s: float = field(default_factory=lambda: _env_float("FNRUN_READY_TIMEOUT_S", 10.0))

    # Process
    shutdown_timeout_s: int = field(default_factory=lambda: _env_int("FNRUN_SHUTDOWN_TIMEOUT_S", 5))
    events_db_path: str = field(default_factory=lambda: _env_str("FNRUN_EVENTS_DB_PATH", "fnrun.db"))
    log_level: str = field(default_factory=lambda: _env_str("FNRUN_LOG_LEVEL", "INFO"))

    def image_for(self, function_name: str) -> str:
        return f"{self.image_prefix}{function_name}"
