"""Conversation and message data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from personaflow.characters.models import Character, User

Role = Literal["system", "user", "assistant"]


class ContextEntry(BaseModel):
    """A key/value fact attached to a user turn."""

    key: str
    value: str


class Message(BaseModel):
    """A single transcript turn."""

    role: Role
    content: str
    context: list[ContextEntry] = Field(default_factory=list)

    def to_api(self) -> dict[str, str]:
        """Format for a chat-completions style API (context stays local)."""
        return {"role": self.role, "content": self.content}


@dataclass
class Conversation:
    """Mutable session state pairing one character with its participants.

    Attributes:
        id: Store-assigned identifier.
        secret: Opaque capability token issued by the store.
        character: Current persona; replaced by ``set_conversation_character``.
        users: Participants.
        persistence_token: Optional caller token for later lookup.
        busy: Set while a send or character change is in flight.
        finished: Terminal; once set the conversation accepts no changes.
        removal_job_id: Scheduler job that deletes the conversation after
            the finish grace delay.
    """

    id: int
    secret: str
    character: Character
    users: list[User] = field(default_factory=list)
    persistence_token: str | None = None
    busy: bool = False
    finished: bool = False
    removal_job_id: str | None = None

    def find_user_name(self, user_id: str) -> str:
        """Return the participant name for *user_id*, or empty string."""
        for user in self.users:
            if user.id == user_id:
                return user.name
        return ""

    @property
    def flags(self) -> dict[str, Any]:
        return {"busy": self.busy, "finished": self.finished}


@dataclass
class SendResult:
    """Outcome of ``send_to_conversation``.

    ``cancelled`` is set when the send failed internally; ``content`` is
    then empty and ``calls`` is empty.
    """

    content: str
    calls: list[dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"content": self.content, "calls": self.calls}
        if self.cancelled:
            data["cancelled"] = True
        return data


@dataclass
class BusyResult:
    """Returned instead of running an operation on a busy or finished conversation."""

    status: int = 429
    message: str = "Conversation is busy"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message}


def cancelled_result() -> SendResult:
    return SendResult(content="", calls=[], cancelled=True)
