"""Character data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from personaflow.characters.hashing import character_hash
from personaflow.errors import CharacterValidationError

ParameterType = Literal["string", "number", "boolean"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class FunctionParameter(_Frozen):
    """One named argument of a callable function."""

    name: str
    description: str = ""
    type: ParameterType = "string"


class CharacterFunction(_Frozen):
    """A function the character may ask the caller to invoke."""

    name: str
    description: str = ""
    parameters: tuple[FunctionParameter, ...] = ()


class ExampleMessage(_Frozen):
    """A single turn of an example conversation."""

    speaker: str = Field(
        validation_alias=AliasChoices("speaker", "user"),
        serialization_alias="user",
    )
    content: str


class CharacterOptions(_Frozen):
    """Persona payload of a character.

    Unknown keys (display metadata and the like) are dropped on
    construction so they never reach the identity hash.
    """

    name: str
    bio: tuple[str, ...]
    lore: tuple[str, ...]
    knowledge: tuple[str, ...]
    message_examples: tuple[tuple[ExampleMessage, ...], ...] = Field(
        validation_alias=AliasChoices("message_examples", "messageExamples"),
        serialization_alias="messageExamples",
    )
    functions: tuple[CharacterFunction, ...]

    def to_record(self) -> dict[str, Any]:
        """Plain dict with the camelCase keys used by stores."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, eq=False)
class Character:
    """An immutable persona, identified by the hash of its content."""

    options: CharacterOptions
    hash: str = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "hash", character_hash(self.options))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Character):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)

    @property
    def name(self) -> str:
        return self.options.name

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Character:
        """Build a character from caller or store supplied fields."""
        return cls(validate_character(data))


class User(BaseModel):
    """A conversation participant."""

    id: str
    name: str


def validate_character(data: dict[str, Any] | CharacterOptions) -> CharacterOptions:
    """Check that all persona fields are present and well-formed.

    Raises:
        CharacterValidationError: If any required field is missing or has
            the wrong shape.
    """
    if isinstance(data, CharacterOptions):
        return data
    try:
        return CharacterOptions.model_validate(data)
    except ValidationError as exc:
        missing = ", ".join(
            ".".join(str(p) for p in err["loc"]) for err in exc.errors()
        )
        msg = f"Invalid character definition ({missing})"
        raise CharacterValidationError(msg) from exc
