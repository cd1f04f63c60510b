"""
User directory collaborators consumed by the notification layer.

Partner links and push tokens live in the account service's database. The
realtime server only needs two lookups, expressed as protocols; the in-memory
implementation is kept in sync through the internal API.
"""

from typing import Protocol


class PartnerDirectory(Protocol):
    async def get_partner_id(self, user_id: str) -> str | None: ...


class PushTokenDirectory(Protocol):
    async def get_push_tokens(self, user_id: str) -> list[str]: ...


class InMemoryUserDirectory:
    """Partner links and push tokens held in process memory."""

    def __init__(self) -> None:
        self._partners: dict[str, str] = {}
        self._push_tokens: dict[str, list[str]] = {}

    async def get_partner_id(self, user_id: str) -> str | None:
        return self._partners.get(user_id)

    async def get_push_tokens(self, user_id: str) -> list[str]:
        return list(self._push_tokens.get(user_id, ()))

    def set_partner(self, user_id: str, partner_id: str | None) -> None:
        """Link two users both ways, or unlink user_id (and its former partner) when partner_id is None."""
        previous = self._partners.pop(user_id, None)
        if previous is not None and self._partners.get(previous) == user_id:
            del self._partners[previous]

        if partner_id is None:
            return

        stale = self._partners.pop(partner_id, None)
        if stale is not None and self._partners.get(stale) == partner_id:
            del self._partners[stale]
        self._partners[user_id] = partner_id
        self._partners[partner_id] = user_id

    def set_push_tokens(self, user_id: str, tokens: list[str]) -> None:
        if tokens:
            self._push_tokens[user_id] = list(dict.fromkeys(tokens))
        else:
            self._push_tokens.pop(user_id, None)
