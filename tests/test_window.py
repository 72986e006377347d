"""Tests for context window assembly."""

import pytest

from personaflow.characters.models import User
from personaflow.conversation.models import ContextEntry, Message
from personaflow.conversation.window import (
    CONTEXT_HEADER,
    assemble_window,
    build_context_entries,
    render_context,
    select_history,
)

USERS = [User(id="u1", name="Sam"), User(id="u2", name="Kim")]


def _transcript(turns: int) -> list[Message]:
    messages = [Message(role="system", content="persona")]
    for i in range(turns):
        role = "user" if i % 2 == 0 else "assistant"
        messages.append(Message(role=role, content=f"turn {i}"))
    return messages


# -- select_history ------------------------------------------------------------


@pytest.mark.parametrize("memory_size", [-3, 0, 1, 2, 5, 50])
def test_persona_always_first(memory_size: int) -> None:
    history = select_history(_transcript(8), memory_size)
    assert history[0].content == "persona"


def test_keeps_most_recent_in_chronological_order() -> None:
    history = select_history(_transcript(8), 4)
    assert [m.content for m in history] == ["persona", "turn 5", "turn 6", "turn 7"]


def test_memory_size_one_sends_no_history() -> None:
    assert [m.content for m in select_history(_transcript(8), 1)] == ["persona"]


def test_short_transcript_is_sent_whole() -> None:
    transcript = _transcript(3)
    assert select_history(transcript, 20) == transcript


@pytest.mark.parametrize("memory_size", [4, 5, 6, 7])
def test_history_shorter_than_capacity_is_kept_whole(memory_size: int) -> None:
    history = select_history(_transcript(3), memory_size)
    assert [m.content for m in history] == ["persona", "turn 0", "turn 1", "turn 2"]


def test_empty_transcript_raises() -> None:
    with pytest.raises(ValueError, match="empty"):
        select_history([], 5)


# -- context entries -----------------------------------------------------------


def test_context_entries_append_users_and_username() -> None:
    entries = build_context_entries([ContextEntry(key="location", value="tavern")], USERS, "u2")
    assert [(e.key, e.value) for e in entries] == [
        ("location", "tavern"),
        ("users", "Sam, Kim"),
        ("username", "Kim"),
    ]


def test_unknown_sender_gets_empty_username() -> None:
    entries = build_context_entries([], USERS, "stranger")
    assert entries[-1] == ContextEntry(key="username", value="")


def test_render_context_format() -> None:
    text = render_context([ContextEntry(key="a", value="1"), ContextEntry(key="b", value="2")])
    assert text == f"{CONTEXT_HEADER}\na: 1\nb: 2"


# -- assemble_window -----------------------------------------------------------


def test_window_ends_with_context_then_user_turn() -> None:
    window = assemble_window(_transcript(4), "hello", [], 10, users=USERS, sender_id="u1")
    *_, context_msg, user_msg = window.messages
    assert context_msg is window.context_message
    assert context_msg.role == "system"
    assert context_msg.content.startswith(CONTEXT_HEADER)
    assert "username: Sam" in context_msg.content
    assert user_msg.role == "user"
    assert user_msg.content == "hello"


def test_user_turn_carries_context_entries() -> None:
    window = assemble_window(
        _transcript(0),
        "hi",
        [ContextEntry(key="quest", value="dragon")],
        10,
        users=USERS,
        sender_id="u1",
    )
    keys = [e.key for e in window.user_message.context]
    assert keys == ["quest", "users", "username"]


@pytest.mark.parametrize("memory_size", [1, 2, 3, 7, 30])
def test_window_never_exceeds_budget(memory_size: int) -> None:
    window = assemble_window(_transcript(20), "x", [], memory_size, users=USERS, sender_id="u1")
    assert len(window.messages) <= memory_size + 2


def test_memory_size_one_has_only_persona_and_synthetic_turns() -> None:
    window = assemble_window(_transcript(6), "x", [], 1, users=USERS, sender_id="u1")
    assert [m.role for m in window.messages] == ["system", "system", "user"]
    assert window.messages[0].content == "persona"


def test_window_does_not_mutate_transcript() -> None:
    transcript = _transcript(4)
    before = list(transcript)
    assemble_window(transcript, "x", [], 3, users=USERS, sender_id="u1")
    assert transcript == before
