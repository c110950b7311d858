from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .models import Retailer


DEFAULT_DATASET_URL = (
    "https://raw.githubusercontent.com/supermarkt/checkjebon/main/data/supermarkets.json"
)

ENV_KEYS = [
    "SUPERMARKT_TIMEOUT_S",
    "SUPERMARKT_MAX_RESULTS",
    "SUPERMARKT_DATASET_URL",
    "SUPERMARKT_DATASET_TTL_S",
    "SUPERMARKT_LIVE_SHARE",
    "SUPERMARKT_SURFACE_ERRORS",
    "SUPERMARKT_RETAILERS",
    "SUPERMARKT_LOG_LEVEL",
]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Config:
    connector_timeout_s: float = 8.0
    max_results: int = 20
    dataset_url: str = DEFAULT_DATASET_URL
    dataset_ttl_s: float = 6 * 60 * 60
    # Share of the connector deadline given to the live call before falling back.
    live_share: float = 0.6
    surface_errors: bool = False
    retailers: tuple[Retailer, ...] = field(default_factory=lambda: tuple(Retailer))
    log_level: str = "INFO"

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "Config":
        env = os.environ if env is None else env
        defaults = Config()
        return Config(
            connector_timeout_s=_positive_float(env, "SUPERMARKT_TIMEOUT_S", defaults.connector_timeout_s),
            max_results=int(_positive_float(env, "SUPERMARKT_MAX_RESULTS", defaults.max_results)),
            dataset_url=env.get("SUPERMARKT_DATASET_URL", defaults.dataset_url).strip() or defaults.dataset_url,
            dataset_ttl_s=_positive_float(env, "SUPERMARKT_DATASET_TTL_S", defaults.dataset_ttl_s),
            live_share=_share(env, "SUPERMARKT_LIVE_SHARE", defaults.live_share),
            surface_errors=_flag(env, "SUPERMARKT_SURFACE_ERRORS", defaults.surface_errors),
            retailers=_retailers(env, "SUPERMARKT_RETAILERS", defaults.retailers),
            log_level=env.get("SUPERMARKT_LOG_LEVEL", defaults.log_level).strip().upper() or defaults.log_level,
        )


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        val = float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number, got {raw!r}")
    if val <= 0:
        raise RuntimeError(f"{key} must be positive, got {raw!r}")
    return val


def _share(env: Mapping[str, str], key: str, default: float) -> float:
    val = _positive_float(env, key, default)
    if val > 1:
        raise RuntimeError(f"{key} must be between 0 and 1, got {val}")
    return val


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise RuntimeError(f"{key} must be a boolean flag, got {raw!r}")


def _retailers(
    env: Mapping[str, str], key: str, default: tuple[Retailer, ...]
) -> tuple[Retailer, ...]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    wanted: set[Retailer] = set()
    for part in raw.split(","):
        part = part.strip().lower()
        if not part:
            continue
        try:
            wanted.add(Retailer(part))
        except ValueError:
            raise RuntimeError(f"{key} names an unknown retailer: {part!r}")
    # Keep declaration order regardless of how the env var lists them.
    return tuple(r for r in Retailer if r in wanted)
