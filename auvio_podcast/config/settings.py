"""
Environment-driven service settings.
Built once at startup and passed explicitly to the pipeline.
"""

import os
from dataclasses import dataclass

from auvio_podcast.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 3000
    base_url: str = "http://127.0.0.1:3000"
    data_path: str = "./data"
    kv_store: str = "./data/store.db"
    cache_backend: str = "sqlite"
    program_cache_ttl: int = 86400
    enclosure_cache_ttl: int = 21600
    http_timeout: float = 15
    pipeline_deadline: float = 120
    enclosure_workers: int = 4


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number, got {raw!r}")


def load_settings() -> Settings:
    """Read settings from the environment with the documented defaults"""
    host = os.getenv("HOST", "127.0.0.1")
    port = _int_env("PORT", 3000)
    data_path = os.getenv("DATA_PATH", "./data")

    cache_backend = os.getenv("CACHE_BACKEND", "sqlite").strip().lower()
    if cache_backend not in ("sqlite", "memory"):
        raise ConfigurationError(f"CACHE_BACKEND must be 'sqlite' or 'memory', got {cache_backend!r}")

    workers = _int_env("ENCLOSURE_WORKERS", 4)
    if workers < 1:
        raise ConfigurationError("ENCLOSURE_WORKERS must be at least 1")

    return Settings(
        host=host,
        port=port,
        base_url=os.getenv("BASE_URL", f"http://{host}:{port}").rstrip("/"),
        data_path=data_path,
        kv_store=os.getenv("KV_STORE", os.path.join(data_path, "store.db")),
        cache_backend=cache_backend,
        program_cache_ttl=_int_env("PROGRAM_CACHE_TTL", 86400),
        enclosure_cache_ttl=_int_env("ENCLOSURE_CACHE_TTL", 21600),
        http_timeout=_float_env("HTTP_TIMEOUT", 15),
        pipeline_deadline=_float_env("PIPELINE_DEADLINE", 120),
        enclosure_workers=workers,
    )
