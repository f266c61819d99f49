import logging
import os
from dataclasses import dataclass
from typing import Tuple

from .hash_ring import DEFAULT_REPLICAS

DEFAULT_NODES = "shard1,shard2,shard3"


@dataclass(frozen=True)
class Settings:
    host: str = "localhost"
    port: int = 8000
    nodes: Tuple[str, ...] = tuple(DEFAULT_NODES.split(","))
    replicas: int = DEFAULT_REPLICAS
    log_level: str = "INFO"


def _int_env(env, name, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(env=None) -> Settings:
    """Build settings from ``SHARDRING_*`` environment variables."""
    env = os.environ if env is None else env

    nodes = tuple(n.strip() for n in env.get("SHARDRING_NODES", DEFAULT_NODES).split(",") if n.strip())
    replicas = _int_env(env, "SHARDRING_REPLICAS", DEFAULT_REPLICAS)
    if replicas < 1:
        raise ValueError(f"SHARDRING_REPLICAS must be positive, got {replicas}")

    log_level = env.get("SHARDRING_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"SHARDRING_LOG_LEVEL must be a logging level name, got {log_level!r}")

    return Settings(
        host=env.get("SHARDRING_HOST", "localhost"),
        port=_int_env(env, "SHARDRING_PORT", 8000),
        nodes=nodes,
        replicas=replicas,
        log_level=log_level,
    )
