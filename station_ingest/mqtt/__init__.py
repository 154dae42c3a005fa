"""Receptor MQTT del bridge de ingesta.

Estructura modular:
- connections.py: Cliente paho (TLS + credenciales)
- backoff.py: Delay de reconexión
- session.py: Sesión de suscripción (máquina de estados, reconexión)
- message_queue.py: Cola acotada + worker único
- message_handler.py: decode → normalize → persist por mensaje
- decoder.py: Payload → mapping plano
"""

from .backoff import ReconnectBackoff
from .connections import BrokerOptions, build_mqtt_client
from .decoder import decode_payload
from .message_handler import MessageHandler
from .message_queue import MessageQueue
from .receiver_stats import ReceiverStats
from .session import TOPIC, SessionState, SubscriptionSession

__all__ = [
    "ReconnectBackoff",
    "BrokerOptions",
    "build_mqtt_client",
    "decode_payload",
    "MessageHandler",
    "MessageQueue",
    "ReceiverStats",
    "TOPIC",
    "SessionState",
    "SubscriptionSession",
]
