"""Conversation orchestration: characters, lifecycle, and the send protocol."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from personaflow.characters.models import Character, CharacterOptions, validate_character
from personaflow.characters.prompt import build_persona_prompt
from personaflow.characters.registry import CharacterRegistry
from personaflow.config import settings as default_settings
from personaflow.conversation.models import (
    BusyResult,
    ContextEntry,
    Conversation,
    Message,
    SendResult,
    cancelled_result,
)
from personaflow.conversation.window import assemble_window
from personaflow.errors import (
    AdapterNotConfiguredError,
    CharacterCreationError,
    CharacterNotFoundError,
    ConversationNotFoundError,
    ModelResponseError,
)
from personaflow.llm.client import create_client
from personaflow.llm.tools import from_tool_calls, to_tool_schema

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from personaflow.characters.models import User
    from personaflow.config import Settings
    from personaflow.llm.client import ModelClient
    from personaflow.store.base import Adapter

logger = logging.getLogger(__name__)

_REMOVAL_PREFIX = "finish-"


class Framework:
    """Runs character-driven conversations against a model backend.

    Characters are cached in a per-instance registry over the adapter.
    Each conversation admits one send or character change at a time;
    overlapping calls get a ``BusyResult`` instead of waiting.

    Args:
        settings: Configuration (defaults to the module-level settings).
        client: Model client override. Built from settings when omitted.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: ModelClient | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.characters = CharacterRegistry()
        self.adapter: Adapter | None = None
        self._client = client
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._active: set[int] = set()

    # -- Lifecycle -------------------------------------------------------------

    async def start(self, adapter: Adapter) -> None:
        """Attach the store and start the removal scheduler."""
        self.adapter = adapter
        if not self._scheduler.running:
            self._scheduler.start()

    async def stop(self) -> None:
        """Stop the scheduler and drop cached characters.

        Conversations still inside their finish grace period are removed
        from the store right away rather than dropped with the scheduler.
        """
        await self._flush_removals()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # AsyncIOScheduler shuts down on the next loop iteration.
            await asyncio.sleep(0)
        self.characters.clear()

    @property
    def client(self) -> ModelClient:
        if self._client is None:
            self._client = create_client(self.settings)
        return self._client

    @property
    def store(self) -> Adapter:
        if self.adapter is None:
            raise AdapterNotConfiguredError
        return self.adapter

    # -- Characters ------------------------------------------------------------

    def validate_character(self, data: dict[str, Any]) -> bool:
        """Raise ``CharacterValidationError`` unless *data* is a complete character."""
        validate_character(data)
        return True

    async def get_or_create_character(
        self, data: dict[str, Any] | CharacterOptions
    ) -> Character:
        """Return the character for *data*, persisting it if the store lacks it.

        The result is not added to the registry; call ``load_character``
        for that.
        """
        character = Character(validate_character(data))

        cached = self.characters.get(character.hash)
        if cached is not None:
            return cached

        stored = await self.store.get_character(character.hash)
        if stored is not None:
            return Character(stored)

        character_id = await self.store.create_character(character)
        if not character_id:
            msg = f"Failed to create character {character.name}"
            raise CharacterCreationError(msg)
        return character

    def contains_character(self, character: Character) -> bool:
        return character.hash in self.characters

    def load_character(self, character: Character) -> Character:
        """Cache *character*. Returns the instance now held for its hash."""
        return self.characters.add(character)

    async def _resolve_character(self, character_hash: str) -> Character:
        cached = self.characters.get(character_hash)
        if cached is not None:
            return cached

        options = await self.store.get_character(character_hash)
        if options is None:
            msg = f"Character {character_hash} not found"
            raise CharacterNotFoundError(msg)

        character = self.load_character(Character(options))
        logger.debug("Loaded character %s from database", character.name)
        return character

    # -- Conversations ---------------------------------------------------------

    async def create_conversation(
        self,
        character: Character,
        users: Iterable[User],
        persistence_token: str | None = None,
    ) -> Conversation | None:
        """Open a conversation and seed it with the persona prompt.

        Returns None when the store cannot allocate an id.
        """
        users = list(users)
        record = await self.store.create_conversation(character, users, persistence_token)
        if record is None or not record.id:
            return None

        await self.store.add_message_to_conversation(
            record.id,
            Message(role="system", content=build_persona_prompt(character.options)),
        )
        return Conversation(
            id=record.id,
            secret=record.secret,
            character=character,
            users=users,
            persistence_token=persistence_token,
        )

    async def get_conversation_by(
        self,
        *,
        id: int | None = None,  # noqa: A002
        secret: str | None = None,
        persistence_token: str | None = None,
    ) -> Conversation | None:
        """Rehydrate a conversation from the store.

        The stored ``finished`` flag is honoured. The stored ``busy`` flag
        is not: in-flight sends are tracked in process, so a handle loaded
        mid-send unlocks when that send ends and a send interrupted by a
        crash does not lock the conversation for good.
        """
        record = await self.store.get_conversation_by(
            id=id, secret=secret, persistence_token=persistence_token
        )
        if record is None:
            return None

        character = await self._resolve_character(record.character_hash)
        return Conversation(
            id=record.id,
            secret=record.secret,
            character=character,
            users=list(record.users),
            persistence_token=record.persistence_token,
            busy=record.finished,
            finished=record.finished,
        )

    async def set_conversation_users(
        self, conversation: Conversation, users: Iterable[User]
    ) -> BusyResult | None:
        if conversation.finished:
            return BusyResult()
        conversation.users = list(users)
        await self.store.set_conversation_users(conversation.id, conversation.users)
        return None

    async def set_conversation_character(
        self, conversation: Conversation, character: Character
    ) -> BusyResult | None:
        """Swap the persona and append its prompt as a new system message."""
        if self._is_locked(conversation):
            return BusyResult()

        async with self._busy(conversation):
            conversation.character = character
            await self.store.set_conversation_character(conversation.id, character)
            await self.store.add_message_to_conversation(
                conversation.id,
                Message(role="system", content=build_persona_prompt(character.options)),
            )
        return None

    async def finish_conversation(self, conversation: Conversation) -> None:
        """Mark the conversation finished and schedule its removal.

        The store record is deleted after ``finish_grace_seconds`` so a
        model call already in flight can still append its reply. Calling
        this on a finished conversation does nothing.
        """
        if conversation.finished:
            return

        job_id = f"{_REMOVAL_PREFIX}{conversation.id}"
        pending = self._scheduler.get_job(job_id)
        record = await self.store.get_conversation_by(id=conversation.id)
        if pending is not None or record is None or record.finished:
            # Finished through another handle; leave the pending removal alone.
            conversation.busy = True
            conversation.finished = True
            conversation.removal_job_id = pending.id if pending is not None else None
            return

        logger.debug("Finishing conversation %s", conversation.id)
        conversation.busy = True
        conversation.finished = True
        await self.store.set_conversation_data(conversation.id, conversation.flags)

        run_date = datetime.now(UTC) + timedelta(seconds=self.settings.finish_grace_seconds)
        job = self._scheduler.add_job(
            self._remove_conversation,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            args=[conversation.id],
            misfire_grace_time=None,
            replace_existing=True,
        )
        conversation.removal_job_id = job.id

    async def _flush_removals(self) -> None:
        """Run every pending removal job now."""
        jobs = [j for j in self._scheduler.get_jobs() if j.id.startswith(_REMOVAL_PREFIX)]
        if jobs:
            logger.info("Removing %d finished conversation(s) before shutdown", len(jobs))
        for job in jobs:
            job.remove()
            try:
                await self._remove_conversation(*job.args)
            except Exception:
                logger.exception("Failed to remove conversation %s", job.args[0])

    async def _remove_conversation(self, conversation_id: int) -> None:
        logger.debug(
            "Removing conversation %s (%.0fs have passed since finish call)",
            conversation_id,
            self.settings.finish_grace_seconds,
        )
        await self.store.finish_conversation(conversation_id)

    # -- Sending ---------------------------------------------------------------

    def _is_locked(self, conversation: Conversation) -> bool:
        return conversation.busy or conversation.finished or conversation.id in self._active

    @asynccontextmanager
    async def _busy(self, conversation: Conversation) -> AsyncIterator[None]:
        """Hold the conversation's busy flag until the block exits."""
        conversation.busy = True
        self._active.add(conversation.id)
        try:
            await self.store.set_conversation_data(conversation.id, {"busy": True})
            yield
        finally:
            self._active.discard(conversation.id)
            # A finish during the block keeps the conversation locked.
            if not conversation.finished:
                conversation.busy = False
                await self.store.set_conversation_data(conversation.id, {"busy": False})

    async def send_to_conversation(
        self,
        conversation: Conversation,
        message: str,
        player_id: str,
        context: Iterable[ContextEntry | dict[str, str]] = (),
    ) -> SendResult | BusyResult:
        """Send a user message and return the character's reply.

        Returns a ``BusyResult`` without touching the transcript when the
        conversation is busy or finished. Any failure during the exchange
        is logged and reported as a cancelled ``SendResult``; the
        conversation stays usable for a retry.
        """
        if self._is_locked(conversation):
            return BusyResult()
        store = self.store

        try:
            async with self._busy(conversation):
                return await self._exchange(store, conversation, message, player_id, context)
        except Exception:
            logger.exception("Error sending message to conversation %s", conversation.id)
            return cancelled_result()

    async def _exchange(
        self,
        store: Adapter,
        conversation: Conversation,
        text: str,
        player_id: str,
        context: Iterable[ContextEntry | dict[str, str]],
    ) -> SendResult:
        character = await self._resolve_character(conversation.character.hash)

        stored = await store.get_conversation_messages(conversation.id)
        if not stored:
            msg = f"Failed to get messages for conversation {conversation.id}"
            raise ConversationNotFoundError(msg)

        entries = [
            entry if isinstance(entry, ContextEntry) else ContextEntry.model_validate(entry)
            for entry in context
        ]
        window = assemble_window(
            stored,
            text,
            entries,
            self.settings.memory_size,
            users=conversation.users,
            sender_id=player_id,
        )
        logger.debug(
            "User %s is sending message to conversation %s. Memory size: %d",
            conversation.find_user_name(player_id) or player_id,
            conversation.id,
            len(window.messages),
        )

        tools = to_tool_schema(character.options.functions)
        reply = await self.client.query(window.messages, tools or None)
        if reply is None:
            msg = "Failed to get response from model"
            raise ModelResponseError(msg)

        content = reply.message or ""
        await store.add_message_to_conversation(conversation.id, window.context_message)
        await store.add_message_to_conversation(conversation.id, window.user_message)
        await store.add_message_to_conversation(
            conversation.id, Message(role="assistant", content=content)
        )

        calls = from_tool_calls(reply.tool_calls)
        return SendResult(content=content, calls=[call.to_dict() for call in calls])
