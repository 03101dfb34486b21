"""Notification dispatcher — in-process events plus fan-out to delivery channels."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from gatekeeper.adapters.base import NotificationChannel

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Awaitable[None] | None]


class NotificationDispatcher:
    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        default_channels: list[str] | None = None,
    ):
        self.channels: dict[str, NotificationChannel] = {c.name: c for c in channels or []}
        self.default_channels = list(default_channels or self.channels)
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def register(self, channel: NotificationChannel) -> None:
        self.channels[channel.name] = channel

    # ── In-process events ────────────────────────────────────────────

    def subscribe(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    async def emit(self, event: str, payload: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning("Listener for %s failed", event, exc_info=True)

    # ── External delivery (fire-and-forget) ──────────────────────────

    async def notify(
        self,
        kind: str,
        payload: dict[str, Any],
        channels: list[str] | None = None,
    ) -> list[str]:
        """Send to each named channel; returns the names that accepted it."""
        delivered = []
        for name in channels or self.default_channels:
            channel = self.channels.get(name)
            if channel is None:
                logger.debug("No notification channel named %r; skipping", name)
                continue
            try:
                await channel.send(kind, payload)
            except Exception as exc:
                logger.warning("Notification %s via %s failed: %s", kind, name, exc)
                continue
            delivered.append(name)
        await self.emit("notification:sent", {"kind": kind, "payload": payload, "channels": delivered})
        return delivered
