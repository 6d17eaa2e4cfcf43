"""
Expo push transport.

Hands batches of messages to the Expo push API. Delivery is fire-and-forget:
the returned tickets are only used to spot device tokens that are no longer
registered so they can be dropped from the profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from errors import TransportBatchFailure

logger = logging.getLogger(__name__)

EXPO_PUSH_API_URL = "https://exp.host/--/api/v2/push/send"
MAX_BATCH_SIZE = 100  # Expo rejects larger requests


@dataclass
class OutboundMessage:
    to: str
    title: str
    body: str
    data: dict = field(default_factory=dict)
    sound: str = "default"

    def to_payload(self) -> dict:
        return {
            "to": self.to,
            "sound": self.sound,
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }


class ExpoPushTransport:
    """POSTs message batches to Expo. One attempt per batch, no retry."""

    def __init__(self, url: str = EXPO_PUSH_API_URL, access_token: str = "",
                 timeout: float = 10.0, client: httpx.Client | None = None):
        self.url = url
        self.access_token = access_token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config) -> ExpoPushTransport:
        return cls(
            url=config.get("EXPO_PUSH_URL", EXPO_PUSH_API_URL),
            access_token=config.get("EXPO_ACCESS_TOKEN", ""),
            timeout=float(config.get("PUSH_TIMEOUT_SECONDS", 10.0)),
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def send_batch(self, messages: list[OutboundMessage]) -> list[dict[str, Any]]:
        """Send one batch. Returns Expo's per-message tickets, in order."""
        if not messages:
            return []
        if len(messages) > MAX_BATCH_SIZE:
            raise ValueError(f"Batch of {len(messages)} exceeds {MAX_BATCH_SIZE}")

        payload = [m.to_payload() for m in messages]
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload, headers=self._headers())
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise TransportBatchFailure(f"Push request failed: {e}") from e

        if response.status_code >= 300:
            raise TransportBatchFailure(
                f"Push service returned {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            logger.warning("Push service returned a non-JSON body")
            return []
        tickets = body.get("data", []) if isinstance(body, dict) else []
        return tickets if isinstance(tickets, list) else []


def unregistered_tokens(messages: list[OutboundMessage], tickets: list[dict]) -> list[str]:
    """Tokens whose ticket reports DeviceNotRegistered."""
    dead = []
    for message, ticket in zip(messages, tickets):
        if not isinstance(ticket, dict) or ticket.get("status") != "error":
            continue
        details = ticket.get("details") or {}
        if details.get("error") == "DeviceNotRegistered":
            dead.append(message.to)
    return dead
