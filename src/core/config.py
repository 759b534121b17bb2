from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from typing import Mapping, Optional

from core.utils import clamp

logger = logging.getLogger(__name__)

ENV_PREFIX = "NOWPLAYING_"


def _env_ms(env: Mapping[str, str], name: str, default_s: float) -> float:
    """Reads a millisecond override and returns seconds; bad values keep the default."""
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default_s
    try:
        ms = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, name, raw)
        return default_s
    return max(0.0, ms / 1000.0)


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, name, raw)
        return default


@dataclass(frozen=True)
class SyncConfig:
    poll_interval_s: float = 0.2
    forced_refresh_interval_s: float = 2.0
    toggle_confirm_delay_s: float = 0.1
    seek_confirm_delay_s: float = 0.2

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> SyncConfig:
        env = os.environ if env is None else env
        d = cls()
        return cls(
            poll_interval_s=_env_ms(env, "POLL_MS", d.poll_interval_s),
            forced_refresh_interval_s=_env_ms(env, "FORCED_REFRESH_MS", d.forced_refresh_interval_s),
            toggle_confirm_delay_s=_env_ms(env, "TOGGLE_CONFIRM_MS", d.toggle_confirm_delay_s),
            seek_confirm_delay_s=_env_ms(env, "SEEK_CONFIRM_MS", d.seek_confirm_delay_s),
        )


@dataclass(frozen=True)
class VisibilityConfig:
    idle_delay_s: float = 2.0
    idle_opacity: float = 0.4
    dismiss_duration_s: float = 60.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> VisibilityConfig:
        env = os.environ if env is None else env
        d = cls()
        return cls(
            idle_delay_s=_env_ms(env, "IDLE_MS", d.idle_delay_s),
            idle_opacity=clamp(_env_float(env, "IDLE_OPACITY", d.idle_opacity), 0.0, 1.0),
            dismiss_duration_s=_env_ms(env, "DISMISS_MS", d.dismiss_duration_s),
        )


@dataclass(frozen=True)
class BackendConfig:
    name: str           # "spotify" | "mpv"
    mpv_ipc_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> BackendConfig:
        env = os.environ if env is None else env
        default = "spotify" if platform.system() == "Darwin" else "mpv"
        name = (env.get(ENV_PREFIX + "BACKEND") or default).strip().lower()
        if name not in ("spotify", "mpv"):
            logger.warning("Unknown backend %r, using %s", name, default)
            name = default
        endpoint = (env.get(ENV_PREFIX + "MPV_IPC") or "").strip() or None
        return cls(name=name, mpv_ipc_endpoint=endpoint)


def debug_enabled(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return env.get(ENV_PREFIX + "DEBUG", "") == "1"
