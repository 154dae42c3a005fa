"""Sesión de suscripción al broker MQTT.

Flujo:
  broker topic awsData
  → SubscriptionSession (este archivo, thread de red de paho)
  → MessageQueue (worker único)
  → MessageHandler: decode → normalize → persist

La sesión es dueña exclusiva del cliente paho y del contador de
reconexiones. Reconecta indefinidamente con backoff; los mensajes
publicados mientras está desconectada se pierden (no hay buffer local).
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from ..errors import TransportError
from ..metrics import RECONNECT_ATTEMPTS, SESSION_CONNECTED
from .backoff import ReconnectBackoff
from .connections import BrokerOptions, build_mqtt_client
from .message_queue import MessageQueue

logger = logging.getLogger(__name__)

TOPIC = "awsData"


class SessionState(str, Enum):
    """Estados de la sesión."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"


def _reason_failed(reason_code: Any) -> bool:
    """True si un reason code (CONNACK/SUBACK) indica fallo."""
    is_failure = getattr(reason_code, "is_failure", None)
    if is_failure is not None:
        return bool(is_failure)
    return int(reason_code) >= 0x80


class SubscriptionSession:
    """Conexión al broker: connect, subscribe, receive, reconnect, shutdown.

    Uso:
        session = SubscriptionSession(options, message_queue)
        session.start()      # o session.run() bloqueante
        ...
        session.shutdown()
    """

    def __init__(
        self,
        options: BrokerOptions,
        message_queue: MessageQueue,
        backoff: Optional[ReconnectBackoff] = None,
        client_factory: Callable[[BrokerOptions, str], Any] = build_mqtt_client,
        topic: str = TOPIC,
        qos: int = 0,
        subscribe_timeout: float = 10.0,
        client_id: str = "station-ingest",
    ):
        self._options = options
        self._queue = message_queue
        self._backoff = backoff or ReconnectBackoff()
        self._client_factory = client_factory
        self._topic = topic
        self._qos = qos
        self._subscribe_timeout = subscribe_timeout
        self._client_id = f"{client_id}-{int(time.time())}"

        self._client: Optional[Any] = None
        self._state = SessionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._total_reconnects = 0
        self._failure_reason: Optional[str] = None

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._connection_lost = threading.Event()
        self._subscribed = threading.Event()
        self._shutdown_done = False
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Corre la sesión en un thread de fondo."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="mqtt-session")
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def run(self) -> None:
        """Loop de conexión. Bloquea hasta shutdown()."""
        with self._lock:
            # shutdown() setea el evento bajo el mismo lock
            if self._stop_event.is_set():
                return
            self._queue.start()

        logger.info(
            "[MQTT] Session started: broker=%s:%d topic=%s",
            self._options.host, self._options.port, self._topic,
        )

        while not self._stop_event.is_set():
            try:
                self._connect_and_subscribe()
            except TransportError as e:
                if self._stop_event.is_set():
                    break
                logger.warning("[MQTT] %s", e)
                self._teardown_client()
                self._wait_backoff()
                continue

            # Suscripto: esperar pérdida de conexión o shutdown
            self._connection_lost.wait()
            if self._stop_event.is_set():
                break

            logger.warning(
                "[MQTT] Connection lost: %s", self._failure_reason or "unknown reason",
            )
            self._teardown_client()
            self._wait_backoff()

        # Un cliente creado en paralelo al shutdown también se cierra
        self._teardown_client()
        self._set_state(SessionState.DISCONNECTED)

    def shutdown(self) -> None:
        """Cierra la conexión y cancela cualquier espera de backoff. Idempotente."""
        with self._lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True
            self._stop_event.set()
            self._connection_lost.set()

        logger.info("[MQTT] Shutdown requested")
        self._teardown_client()
        self._queue.stop()
        self._set_state(SessionState.DISCONNECTED)
        SESSION_CONNECTED.set(0)

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)

        logger.info(
            "[MQTT] Stopped. %s reconnects=%d", self._queue.stats, self._total_reconnects,
        )

    # ------------------------------------------------------------------
    # Conexión
    # ------------------------------------------------------------------

    def _connect_and_subscribe(self) -> None:
        with self._lock:
            if self._stop_event.is_set():
                return
            self._connection_lost.clear()
            self._subscribed.clear()
            self._failure_reason = None
            self._state = SessionState.CONNECTING

            client = self._client_factory(self._options, self._client_id)
            client.on_connect = self._on_connect
            client.on_disconnect = self._on_disconnect
            client.on_subscribe = self._on_subscribe
            client.on_message = self._on_message
            self._client = client

        logger.info("[MQTT] Connecting to %s:%d", self._options.host, self._options.port)
        try:
            client.connect(self._options.host, self._options.port, keepalive=self._options.keepalive)
        except (OSError, ValueError) as e:
            # socket.error, ssl.SSLError, DNS: todos OSError
            raise TransportError(
                f"Connect to {self._options.host}:{self._options.port} failed: {e}"
            ) from e

        with self._lock:
            if self._stop_event.is_set() or client is not self._client:
                # shutdown() llegó durante connect(): no arrancar el loop de red
                aborted = True
            else:
                aborted = False
                client.loop_start()
        if aborted:
            self._teardown_client()
            return

        self._wait_for_subscription()

    def _wait_for_subscription(self) -> None:
        """Espera SUBACK; sin SUBACK a tiempo cuenta como fallo de conexión."""
        deadline = time.monotonic() + self._subscribe_timeout
        while not self._subscribed.is_set():
            if self._connection_lost.is_set():
                raise TransportError(
                    self._failure_reason or "Connection lost before subscription"
                )
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransportError(
                    f"Subscription acknowledgment not received within {self._subscribe_timeout:.1f}s"
                )
            self._subscribed.wait(min(remaining, 0.05))

    def _wait_backoff(self) -> None:
        with self._lock:
            if self._stop_event.is_set():
                return
            self._reconnect_attempts += 1
            self._total_reconnects += 1
            attempt = self._reconnect_attempts
            self._state = SessionState.RECONNECTING

        delay = self._backoff.delay_for(attempt)
        RECONNECT_ATTEMPTS.inc()
        logger.warning("[MQTT] Reconnecting in %.2fs (attempt=%d)", delay, attempt)

        # shutdown() setea el evento y corta la espera
        self._stop_event.wait(delay)

    def _teardown_client(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is None:
            return

        SESSION_CONNECTED.set(0)
        try:
            client.loop_stop()
        except Exception as e:
            logger.warning("[MQTT] Error stopping network loop: %s", e)
        try:
            client.disconnect()
        except Exception as e:
            logger.warning("[MQTT] Disconnect error: %s", e)

    def _set_state(self, state: SessionState) -> None:
        with self._lock:
            if self._state != state:
                logger.debug("[MQTT] State %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Callbacks paho (thread de red)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if client is not self._client:
            return

        if _reason_failed(reason_code):
            # Credenciales inválidas incluidas: se reintenta igual que un fallo de red
            self._failure_reason = f"Connection refused by broker: rc={reason_code}"
            logger.error("[MQTT] Connection failed: rc=%s", reason_code)
            self._connection_lost.set()
            return

        self._set_state(SessionState.CONNECTED)
        logger.info("[MQTT] Connected to broker %s:%d", self._options.host, self._options.port)

        result, _mid = client.subscribe(self._topic, qos=self._qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._failure_reason = f"Subscribe request failed: rc={result}"
            logger.error("[MQTT] Subscription error: rc=%s topic=%s", result, self._topic)
            self._connection_lost.set()

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        """Callback de SUBACK."""
        if client is not self._client:
            return

        if any(_reason_failed(rc) for rc in reason_code_list):
            self._failure_reason = f"Subscription rejected: {list(reason_code_list)}"
            logger.error("[MQTT] Subscription error: %s topic=%s", list(reason_code_list), self._topic)
            self._connection_lost.set()
            return

        with self._lock:
            self._state = SessionState.SUBSCRIBED
            self._reconnect_attempts = 0
        SESSION_CONNECTED.set(1)
        logger.info("[MQTT] Subscribed to %s topic", self._topic)
        self._subscribed.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de desconexión."""
        if client is not self._client:
            return

        SESSION_CONNECTED.set(0)
        if self._stop_event.is_set():
            logger.info("[MQTT] Connection closed")
            return

        self._failure_reason = f"Disconnected (rc={reason_code})"
        logger.warning("[MQTT] Disconnected (rc=%s)", reason_code)
        self._connection_lost.set()

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje - solo encola."""
        logger.debug("[MQTT] Received message on topic %s size=%d", msg.topic, len(msg.payload))
        self._queue.enqueue(msg.topic, msg.payload)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    @property
    def is_subscribed(self) -> bool:
        return self.state == SessionState.SUBSCRIBED

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stats(self) -> dict:
        with self._lock:
            state = self._state
            attempts = self._reconnect_attempts
            total = self._total_reconnects
        return {
            "state": state.value,
            "broker": f"{self._options.host}:{self._options.port}",
            "topic": self._topic,
            "reconnect_attempts": attempts,
            "reconnect_count": total,
            "queue_depth": self._queue.depth,
            **self._queue.stats,
        }

    def health_check(self) -> dict:
        stats = self._queue.stats
        last = stats.get("last_message_at") or 0
        return {
            "healthy": self.is_subscribed,
            "state": self.state.value,
            "reconnect_attempts": self.reconnect_attempts,
            "messages_processed": stats.get("processed", 0),
            "messages_failed": (
                stats.get("decode_failed", 0)
                + stats.get("persist_failed", 0)
                + stats.get("failed", 0)
            ),
            "last_message_age_seconds": time.time() - last if last > 0 else None,
        }
