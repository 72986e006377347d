"""Shared test fixtures."""

import pytest

from personaflow.characters.models import Character, User
from personaflow.config import Settings
from personaflow.framework import Framework
from personaflow.store.memory import InMemoryAdapter
from tests.factories import ADA, WEATHER_BOT, FakeModelClient


@pytest.fixture
def ada() -> Character:
    return Character.from_record(ADA)


@pytest.fixture
def stormy() -> Character:
    return Character.from_record(WEATHER_BOT)


@pytest.fixture
def sam() -> User:
    return User(id="u1", name="Sam")


@pytest.fixture
def adapter() -> InMemoryAdapter:
    return InMemoryAdapter()


@pytest.fixture
def model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(memory_size=10, finish_grace_seconds=60.0)


@pytest.fixture
async def framework(test_settings: Settings, model: FakeModelClient, adapter: InMemoryAdapter):
    """A started Framework wired to the in-memory adapter and fake model."""
    fw = Framework(settings=test_settings, client=model)
    await fw.start(adapter)
    yield fw
    await fw.stop()
