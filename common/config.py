from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuración inválida o incompleta. Fatal al arrancar."""


def _default_env_file() -> str:
    # El dashboard guarda sus credenciales en .env.local; se reutiliza el mismo archivo.
    return str(Path.cwd() / ".env.local")


@dataclass(frozen=True)
class Settings:
    # Store (Supabase REST o URL SQLAlchemy)
    endpoint: str
    key: str

    # Broker MQTT
    host: str
    port: int
    username: Optional[str]
    password: Optional[str]
    tls: bool
    tls_insecure: bool
    qos: int

    # Reconexión
    reconnect_interval_ms: int
    reconnect_max_ms: int
    reconnect_factor: float
    subscribe_timeout: float

    # Procesamiento
    queue_size: int
    persist_retry_attempts: int
    store_timeout: float

    metrics_port: Optional[int]
    log_level: str


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got: {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name)
    if raw is None:
        return default
    value = raw.lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got: {raw!r}")


def get_settings() -> Settings:
    # Carga el env file (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("INGEST_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    endpoint = _env_str("SUPABASE_URL")
    key = _env_str("SUPABASE_KEY")
    if not endpoint or not key:
        raise ConfigError("Supabase URL or key is missing in the environment variables")

    port = _env_int("HIVEMQ_PORT", 8883)
    if not 0 < port < 65536:
        raise ConfigError(f"HIVEMQ_PORT out of range: {port}")

    qos = _env_int("MQTT_QOS", 0)
    if qos not in (0, 1, 2):
        raise ConfigError(f"MQTT_QOS must be 0, 1 or 2, got: {qos}")

    metrics_port_raw = _env_str("METRICS_PORT")

    return Settings(
        endpoint=endpoint,
        key=key,
        host=_env_str("HIVEMQ_URL") or "localhost",
        port=port,
        username=_env_str("HIVEMQ_USERNAME"),
        password=_env_str("HIVEMQ_PASSWORD"),
        tls=_env_bool("MQTT_TLS", True),
        tls_insecure=_env_bool("MQTT_TLS_INSECURE", False),
        qos=qos,
        reconnect_interval_ms=_env_int("MQTT_RECONNECT_INTERVAL_MS", 1000),
        reconnect_max_ms=_env_int("MQTT_RECONNECT_MAX_MS", 30000),
        reconnect_factor=_env_float("MQTT_RECONNECT_FACTOR", 1.0),
        subscribe_timeout=_env_float("MQTT_SUBSCRIBE_TIMEOUT", 10.0),
        queue_size=_env_int("INGEST_QUEUE_SIZE", 1000),
        persist_retry_attempts=max(1, _env_int("PERSIST_RETRY_ATTEMPTS", 1)),
        store_timeout=_env_float("STORE_TIMEOUT", 5.0),
        metrics_port=_env_int("METRICS_PORT", 0) if metrics_port_raw else None,
        log_level=(_env_str("LOG_LEVEL") or "INFO").upper(),
    )
