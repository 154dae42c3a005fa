"""Backoff de reconexión al broker."""

from __future__ import annotations

from dataclasses import dataclass

from common.config import Settings


@dataclass(frozen=True)
class ReconnectBackoff:
    """delay = min(interval * factor ** (attempt - 1), max_delay)

    Con factor=1 el delay es fijo (el intervalo de reconexión clásico).
    """

    interval: float = 1.0  # segundos
    max_delay: float = 30.0  # segundos
    factor: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Delay antes del intento `attempt` (1-indexed)."""
        delay = self.interval * (self.factor ** max(0, attempt - 1))
        return max(0.0, min(delay, self.max_delay))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconnectBackoff":
        return cls(
            interval=settings.reconnect_interval_ms / 1000.0,
            max_delay=max(settings.reconnect_max_ms, settings.reconnect_interval_ms) / 1000.0,
            factor=max(1.0, settings.reconnect_factor),
        )
