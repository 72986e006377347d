"""SqliteAdapter — aiosqlite persistence for characters and conversations."""

from __future__ import annotations

import json
import logging
import secrets
from typing import TYPE_CHECKING, Any

import aiosqlite

from personaflow.characters.models import CharacterOptions, User
from personaflow.config import settings
from personaflow.conversation.models import ContextEntry, Message
from personaflow.store.base import Adapter, ConversationRecord

if TYPE_CHECKING:
    from pathlib import Path

    from personaflow.characters.models import Character

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS characters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hash TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        secret TEXT NOT NULL UNIQUE,
        character_hash TEXT NOT NULL,
        users TEXT NOT NULL DEFAULT '[]',
        persistence_token TEXT,
        busy INTEGER NOT NULL DEFAULT 0,
        finished INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id INTEGER NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        context TEXT NOT NULL DEFAULT '[]'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id, id)",
)

_FLAG_COLUMNS = ("busy", "finished")


def _dump_users(users: list[User]) -> str:
    return json.dumps([u.model_dump() for u in users])


def _load_users(raw: str) -> list[User]:
    return [User.model_validate(u) for u in json.loads(raw or "[]")]


def _record_from_row(row: tuple) -> ConversationRecord:
    return ConversationRecord(
        id=row[0],
        secret=row[1],
        character_hash=row[2],
        users=_load_users(row[3]),
        persistence_token=row[4],
        busy=bool(row[5]),
        finished=bool(row[6]),
    )


class SqliteAdapter(Adapter):
    """Persists characters, conversations and transcripts in SQLite.

    Pass an explicit *db_path* for test isolation (e.g.
    ``tmp_path / "test.db"``); otherwise ``settings.database_path`` is used.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            for statement in _SCHEMA:
                await db.execute(statement)
            await db.commit()
            self._initialised = True
        return db

    async def _write(self, sql: str, params: tuple = ()) -> int:
        db = await self._connect()
        try:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.rowcount
        finally:
            await db.close()

    # -- Characters ------------------------------------------------------------

    async def get_character(self, character_hash: str) -> CharacterOptions | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT data FROM characters WHERE hash = ?", (character_hash,)
            )
            row = await cursor.fetchone()
            return CharacterOptions.model_validate(json.loads(row[0])) if row else None
        finally:
            await db.close()

    async def create_character(self, character: Character) -> int | None:
        db = await self._connect()
        try:
            await db.execute(
                "INSERT OR IGNORE INTO characters (hash, name, data) VALUES (?, ?, ?)",
                (character.hash, character.name, json.dumps(character.options.to_record())),
            )
            await db.commit()
            cursor = await db.execute(
                "SELECT id FROM characters WHERE hash = ?", (character.hash,)
            )
            row = await cursor.fetchone()
            if row:
                logger.info("Stored character %s (%s)", character.name, row[0])
            return row[0] if row else None
        finally:
            await db.close()

    # -- Conversations ---------------------------------------------------------

    async def create_conversation(
        self,
        character: Character,
        users: list[User],
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        secret = secrets.token_hex(16)
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                INSERT INTO conversations (secret, character_hash, users, persistence_token)
                VALUES (?, ?, ?, ?)
                """,
                (secret, character.hash, _dump_users(users), persistence_token),
            )
            await db.commit()
            conversation_id = cursor.lastrowid
        finally:
            await db.close()

        if conversation_id is None:
            return None
        return ConversationRecord(
            id=conversation_id,
            secret=secret,
            character_hash=character.hash,
            users=list(users),
            persistence_token=persistence_token,
        )

    async def get_conversation_by(
        self,
        *,
        id: int | None = None,  # noqa: A002
        secret: str | None = None,
        persistence_token: str | None = None,
    ) -> ConversationRecord | None:
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("id", id),
            ("secret", secret),
            ("persistence_token", persistence_token),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if not clauses:
            return None

        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT id, secret, character_hash, users, persistence_token, busy, finished "
                f"FROM conversations WHERE {' AND '.join(clauses)} LIMIT 1",
                tuple(params),
            )
            row = await cursor.fetchone()
            return _record_from_row(row) if row else None
        finally:
            await db.close()

    async def set_conversation_users(self, conversation_id: int, users: list[User]) -> None:
        await self._write(
            "UPDATE conversations SET users = ? WHERE id = ?",
            (_dump_users(users), conversation_id),
        )

    async def set_conversation_character(
        self, conversation_id: int, character: Character
    ) -> None:
        await self._write(
            "UPDATE conversations SET character_hash = ? WHERE id = ?",
            (character.hash, conversation_id),
        )

    async def set_conversation_data(self, conversation_id: int, data: dict[str, Any]) -> None:
        flags = {k: int(bool(v)) for k, v in data.items() if k in _FLAG_COLUMNS}
        if not flags:
            return
        assignments = ", ".join(f"{column} = ?" for column in flags)
        await self._write(
            f"UPDATE conversations SET {assignments} WHERE id = ?",
            (*flags.values(), conversation_id),
        )

    async def finish_conversation(self, conversation_id: int) -> None:
        db = await self._connect()
        try:
            await db.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            await db.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            await db.commit()
            logger.info("Deleted conversation %s", conversation_id)
        finally:
            await db.close()

    # -- Messages --------------------------------------------------------------

    async def add_message_to_conversation(self, conversation_id: int, message: Message) -> None:
        await self._write(
            "INSERT INTO messages (conversation_id, role, content, context) VALUES (?, ?, ?, ?)",
            (
                conversation_id,
                message.role,
                message.content,
                json.dumps([entry.model_dump() for entry in message.context]),
            ),
        )

    async def get_conversation_messages(self, conversation_id: int) -> list[Message] | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT 1 FROM conversations WHERE id = ?", (conversation_id,)
            )
            if await cursor.fetchone() is None:
                return None
            cursor = await db.execute(
                "SELECT role, content, context FROM messages "
                "WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
            return [
                Message(
                    role=row[0],
                    content=row[1],
                    context=[ContextEntry.model_validate(c) for c in json.loads(row[2])],
                )
                for row in rows
            ]
        finally:
            await db.close()
