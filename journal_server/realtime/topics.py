"""
Topic naming helpers.

Topics are plain strings with a kind prefix: `journal:{journalId}`,
`user:{userId}` and `game:{coupleId}`.
"""

JOURNAL_PREFIX = "journal"
USER_PREFIX = "user"
GAME_PREFIX = "game"

TOPIC_KINDS = frozenset({JOURNAL_PREFIX, USER_PREFIX, GAME_PREFIX})


def journal_topic(journal_id: str) -> str:
    return f"{JOURNAL_PREFIX}:{journal_id}"


def user_topic(user_id: str) -> str:
    return f"{USER_PREFIX}:{user_id}"


def game_topic(couple_id: str) -> str:
    return f"{GAME_PREFIX}:{couple_id}"


def parse_topic(topic_id: str) -> tuple[str, str]:
    """
    Split a topic id into (kind, identifier).

    Raises:
        ValueError: If the id has no known kind prefix or an empty identifier
    """
    kind, sep, ident = topic_id.partition(":")
    if not sep or kind not in TOPIC_KINDS or not ident:
        raise ValueError(f"Invalid topic id: {topic_id!r}")
    return kind, ident


def is_game_topic(topic_id: str) -> bool:
    return topic_id.startswith(f"{GAME_PREFIX}:")
