"""Dict-backed adapter for tests and single-process use."""

from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from itertools import count
from typing import TYPE_CHECKING, Any

from personaflow.store.base import Adapter, ConversationRecord

if TYPE_CHECKING:
    from personaflow.characters.models import Character, CharacterOptions, User
    from personaflow.conversation.models import Message

logger = logging.getLogger(__name__)


class InMemoryAdapter(Adapter):
    """Keeps everything in process memory. Lost on exit."""

    def __init__(self) -> None:
        self.characters: dict[str, CharacterOptions] = {}
        self.conversations: dict[int, ConversationRecord] = {}
        self.messages: dict[int, list[Message]] = {}
        self._character_ids = count(1)
        self._conversation_ids = count(1)

    async def get_character(self, character_hash: str) -> CharacterOptions | None:
        return self.characters.get(character_hash)

    async def create_character(self, character: Character) -> int | None:
        self.characters[character.hash] = character.options
        return next(self._character_ids)

    async def create_conversation(
        self,
        character: Character,
        users: list[User],
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        record = ConversationRecord(
            id=next(self._conversation_ids),
            secret=secrets.token_hex(16),
            character_hash=character.hash,
            users=list(users),
            persistence_token=persistence_token,
        )
        self.conversations[record.id] = record
        self.messages[record.id] = []
        return replace(record)

    async def get_conversation_by(
        self,
        *,
        id: int | None = None,  # noqa: A002
        secret: str | None = None,
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        if id is None and secret is None and persistence_token is None:
            return None
        for record in self.conversations.values():
            if id is not None and record.id != id:
                continue
            if secret is not None and record.secret != secret:
                continue
            if persistence_token is not None and record.persistence_token != persistence_token:
                continue
            return replace(record, users=list(record.users))
        return None

    async def set_conversation_users(self, conversation_id: int, users: list[User]) -> None:
        if record := self.conversations.get(conversation_id):
            record.users = list(users)

    async def set_conversation_character(
        self, conversation_id: int, character: Character
    ) -> None:
        if record := self.conversations.get(conversation_id):
            record.character_hash = character.hash

    async def set_conversation_data(self, conversation_id: int, data: dict[str, Any]) -> None:
        if record := self.conversations.get(conversation_id):
            if "busy" in data:
                record.busy = bool(data["busy"])
            if "finished" in data:
                record.finished = bool(data["finished"])

    async def finish_conversation(self, conversation_id: int) -> None:
        self.conversations.pop(conversation_id, None)
        self.messages.pop(conversation_id, None)
        logger.debug("Deleted conversation %s", conversation_id)

    async def add_message_to_conversation(self, conversation_id: int, message: Message) -> None:
        if conversation_id in self.messages:
            self.messages[conversation_id].append(message)

    async def get_conversation_messages(self, conversation_id: int) -> list[Message] | None:
        transcript = self.messages.get(conversation_id)
        return list(transcript) if transcript is not None else None
