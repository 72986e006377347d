"""Adapter contract for durable character and conversation storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from personaflow.characters.models import Character, CharacterOptions, User
    from personaflow.conversation.models import Message


@dataclass
class ConversationRecord:
    """A conversation as the store keeps it."""

    id: int
    secret: str
    character_hash: str
    users: list[User] = field(default_factory=list)
    persistence_token: str | None = None
    busy: bool = False
    finished: bool = False


class Adapter(ABC):
    """Persistence backend used by ``Framework``.

    The store is the source of truth for characters, conversations and
    transcripts. Message order is the order of ``add_message_to_conversation``
    calls.
    """

    # -- Characters ------------------------------------------------------------

    @abstractmethod
    async def get_character(self, character_hash: str) -> CharacterOptions | None:
        """Fetch a character definition by hash."""

    @abstractmethod
    async def create_character(self, character: Character) -> int | None:
        """Persist a character. Returns its row id, or None on failure."""

    # -- Conversations ---------------------------------------------------------

    @abstractmethod
    async def create_conversation(
        self,
        character: Character,
        users: list[User],
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        """Allocate an id and secret for a new conversation."""

    @abstractmethod
    async def get_conversation_by(
        self,
        *,
        id: int | None = None,  # noqa: A002
        secret: str | None = None,
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        """Find a conversation matching every given key."""

    @abstractmethod
    async def set_conversation_users(self, conversation_id: int, users: list[User]) -> None: ...

    @abstractmethod
    async def set_conversation_character(
        self, conversation_id: int, character: Character
    ) -> None: ...

    @abstractmethod
    async def set_conversation_data(self, conversation_id: int, data: dict[str, Any]) -> None:
        """Merge lifecycle flags (``busy``, ``finished``) into the record."""

    @abstractmethod
    async def finish_conversation(self, conversation_id: int) -> None:
        """Delete the conversation and its transcript."""

    # -- Messages --------------------------------------------------------------

    @abstractmethod
    async def add_message_to_conversation(self, conversation_id: int, message: Message) -> None: ...

    @abstractmethod
    async def get_conversation_messages(self, conversation_id: int) -> list[Message] | None:
        """Return the transcript in insertion order, or None if unknown."""
