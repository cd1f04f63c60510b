"""
Expo push service client.

Posts notification batches to the Expo push endpoint with httpx and counts the
tickets Expo accepted.
"""

import re
from typing import Any

import httpx

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

# Expo rejects requests with more messages than this
EXPO_MAX_BATCH_SIZE = 100

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")


def is_expo_push_token(token: str) -> bool:
    return bool(_EXPO_TOKEN_RE.match(token))


class ExpoPushClient:
    """Sends push notifications through Expo."""

    def __init__(self, url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    def build_messages(self, tokens: list[str], title: str, body: str, data: dict[str, Any]) -> list[dict[str, Any]]:
        messages = []
        for token in tokens:
            if not is_expo_push_token(token):
                logger.warning("Skipping invalid Expo push token", token_preview=token[:16])
                continue
            messages.append(
                {
                    "to": token,
                    "sound": "default",
                    "title": title,
                    "body": body,
                    "data": data,
                    "priority": "high",
                    "channelId": "default",
                }
            )
        return messages

    def _parse_tickets(self, response: httpx.Response) -> list[dict[str, Any]]:
        """Ticket objects from an Expo response; an unreadable body yields none."""
        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("Expo returned a non-JSON response", status_code=response.status_code, error=str(e))
            return []

        tickets = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(tickets, list):
            logger.warning("Expo response has no ticket list", status_code=response.status_code)
            return []
        return [ticket for ticket in tickets if isinstance(ticket, dict)]

    async def send(self, tokens: list[str], title: str, body: str, data: dict[str, Any] | None = None) -> int:
        """
        Send one notification to every valid token.

        Returns:
            int: Number of tickets Expo reported as ok

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response
        """
        messages = self.build_messages(tokens, title, body, data or {})
        if not messages:
            return 0

        accepted = 0
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for start in range(0, len(messages), EXPO_MAX_BATCH_SIZE):
                chunk = messages[start : start + EXPO_MAX_BATCH_SIZE]
                response = await client.post(
                    self._url,
                    json=chunk,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                )
                response.raise_for_status()
                tickets = self._parse_tickets(response)
                for ticket in tickets:
                    if ticket.get("status") == "ok":
                        accepted += 1
                    else:
                        logger.warning(
                            "Expo rejected push ticket",
                            message=ticket.get("message"),
                            details=ticket.get("details"),
                        )
        return accepted
