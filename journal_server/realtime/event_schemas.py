"""
Inbound event payload models.

Clients send camelCase fields (journalId, coupleId, ...); ids may arrive as
strings or integers and are normalized to strings.
"""

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, StrictBool

MAX_IDENTIFIER_LENGTH = 128


def _to_identifier(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("id must be a string or an integer")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("id cannot be empty")
        if ":" in stripped:
            raise ValueError("id cannot contain ':'")
        if len(stripped) > MAX_IDENTIFIER_LENGTH:
            raise ValueError(f"id longer than {MAX_IDENTIFIER_LENGTH} characters")
        return stripped
    raise ValueError("id must be a string or an integer")


Identifier = Annotated[str, BeforeValidator(_to_identifier)]


class EventPayload(BaseModel):
    """Base for all inbound payloads; unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmptyPayload(EventPayload):
    pass


class AuthPayload(EventPayload):
    token: str = Field(min_length=1)


class JournalPayload(EventPayload):
    journal_id: Identifier = Field(alias="journalId")


class MessageReadPayload(JournalPayload):
    message_id: Identifier = Field(alias="messageId")


class GamePayload(EventPayload):
    couple_id: Identifier = Field(alias="coupleId")


class DrawCardPayload(GamePayload):
    # Nested `data.type` carries the card type; flat frames use cardType since `type` names the event
    card_type: str = Field(
        validation_alias=AliasChoices("cardType", "card_type", "type"),
        min_length=1,
        max_length=32,
    )
    text: str = Field(min_length=1)


class ToggleModePayload(GamePayload):
    is_extreme: StrictBool = Field(alias="isExtreme")
