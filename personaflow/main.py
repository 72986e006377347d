"""Interactive terminal chat with a character loaded from a JSON file."""

import asyncio
import json
import logging
import sys
from pathlib import Path

from personaflow.characters.models import User
from personaflow.config import settings
from personaflow.conversation.models import BusyResult
from personaflow.framework import Framework
from personaflow.store.sqlite import SqliteAdapter

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)

LOCAL_USER = User(id="local", name="Player")


async def chat(character_path: Path) -> None:
    """Run a read-eval-print loop against one conversation."""
    framework = Framework()
    await framework.start(SqliteAdapter())
    try:
        data = json.loads(character_path.read_text(encoding="utf-8"))
        character = framework.load_character(await framework.get_or_create_character(data))
        conversation = await framework.create_conversation(character, [LOCAL_USER])
        if conversation is None:
            logger.error("Store could not create a conversation")
            return

        logger.info("Talking to %s (conversation %s)", character.name, conversation.id)
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not line.strip():
                continue

            result = await framework.send_to_conversation(conversation, line, LOCAL_USER.id)
            if isinstance(result, BusyResult):
                print(result.message)
                continue
            if result.cancelled:
                print("(no reply, see logs)")
                continue
            print(f"{character.name}: {result.content}")
            for call in result.calls:
                print(f"  [call] {call['name']}({json.dumps(call['parameters'])})")

        await framework.finish_conversation(conversation)
    finally:
        await framework.stop()


def main() -> None:
    """Start a chat with the character file given on the command line."""
    if len(sys.argv) != 2:
        print("usage: personaflow <character.json>", file=sys.stderr)
        sys.exit(2)
    asyncio.run(chat(Path(sys.argv[1])))


if __name__ == "__main__":
    main()
