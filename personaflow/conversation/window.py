"""Bounded context window assembly for model requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from personaflow.conversation.models import ContextEntry, Message

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from personaflow.characters.models import User

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "## Context"


@dataclass
class ContextWindow:
    """Messages to send plus the two synthetic turns to persist afterwards."""

    messages: list[Message]
    context_message: Message
    user_message: Message


def select_history(stored: Sequence[Message], memory_size: int) -> list[Message]:
    """Pick the persona message plus the most recent turns that fit.

    The first stored message (the persona prompt) is always kept. The
    remaining ``memory_size - 1`` slots are filled newest-first and
    returned in chronological order.
    """
    if not stored:
        msg = "Conversation transcript is empty"
        raise ValueError(msg)

    capacity = max(memory_size - 1, 0)
    history = list(stored[1:])
    recent = history[-capacity:] if capacity else []
    return [stored[0], *recent]


def build_context_entries(
    injected: Iterable[ContextEntry],
    users: Sequence[User],
    sender_id: str,
) -> list[ContextEntry]:
    """Append the participant list and the sender name to caller context."""
    sender = next((u.name for u in users if u.id == sender_id), "")
    return [
        *injected,
        ContextEntry(key="users", value=", ".join(u.name for u in users)),
        ContextEntry(key="username", value=sender),
    ]


def render_context(entries: Iterable[ContextEntry]) -> str:
    lines = "\n".join(f"{e.key}: {e.value}" for e in entries)
    return f"{CONTEXT_HEADER}\n{lines}"


def assemble_window(
    stored: Sequence[Message],
    new_user_turn: str,
    injected_context: Iterable[ContextEntry],
    memory_size: int,
    *,
    users: Sequence[User],
    sender_id: str,
) -> ContextWindow:
    """Build the message sequence for one model request.

    Returns at most ``memory_size + 2`` messages: the persona prompt, up
    to ``memory_size - 1`` recent turns, a system turn carrying the
    rendered context, and the new user turn.
    """
    entries = build_context_entries(injected_context, users, sender_id)
    context_message = Message(role="system", content=render_context(entries))
    user_message = Message(role="user", content=new_user_turn, context=entries)

    messages = [*select_history(stored, memory_size), context_message, user_message]
    logger.debug(
        "Assembled window of %d message(s) from %d stored", len(messages), len(stored)
    )
    return ContextWindow(
        messages=messages,
        context_message=context_message,
        user_message=user_message,
    )
