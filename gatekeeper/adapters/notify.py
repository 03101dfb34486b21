"""Notification channels: log output and JSON webhooks."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gatekeeper.adapters.base import NotificationChannel

logger = logging.getLogger(__name__)


class LogChannel(NotificationChannel):
    name = "log"

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logging.getLogger("gatekeeper.notify")

    async def send(self, kind: str, payload: dict[str, Any]) -> None:
        self.log.info("[%s] %s", kind, payload)


class WebhookChannel(NotificationChannel):
    """POSTs ``{"kind": ..., "payload": ...}`` to a URL (Slack-style hooks, chat bridges)."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def send(self, kind: str, payload: dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, json={"kind": kind, "payload": payload})
            resp.raise_for_status()
