"""Construcción del cliente MQTT (paho) con TLS y credenciales."""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from typing import Optional

import paho.mqtt.client as mqtt

from common.config import Settings

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 60

# La sesión maneja su propio backoff; el reconnect interno de paho queda
# prácticamente deshabilitado.
_PAHO_RECONNECT_DELAY = 3600


@dataclass(frozen=True)
class BrokerOptions:
    host: str = "localhost"
    port: int = 8883
    username: Optional[str] = None
    password: Optional[str] = None
    tls: bool = True
    tls_insecure: bool = False
    keepalive: int = KEEPALIVE_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrokerOptions":
        return cls(
            host=settings.host,
            port=settings.port,
            username=settings.username,
            password=settings.password,
            tls=settings.tls,
            tls_insecure=settings.tls_insecure,
        )


def build_mqtt_client(options: BrokerOptions, client_id: str) -> mqtt.Client:
    """Crea un cliente paho listo para conectar (callbacks los asigna la sesión)."""
    client = mqtt.Client(
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
    )

    if options.username:
        client.username_pw_set(options.username, options.password)

    if options.tls:
        if options.tls_insecure:
            # Acepta certificados no verificados (broker con cert self-signed)
            client.tls_set(cert_reqs=ssl.CERT_NONE)
            client.tls_insecure_set(True)
            logger.warning("[MQTT] TLS certificate verification disabled")
        else:
            client.tls_set()

    client.reconnect_delay_set(min_delay=_PAHO_RECONNECT_DELAY, max_delay=_PAHO_RECONNECT_DELAY)
    return client
