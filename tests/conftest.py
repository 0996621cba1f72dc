"""Shared test fixtures for inbox-cockpit tests."""

import pytest

from inbox_cockpit.cache import SummaryStore
from inbox_cockpit.events import EventBus
from inbox_cockpit.history import GenerationHistory
from inbox_cockpit.models import MessageMetadata, Recipient
from inbox_cockpit.storage import MemoryStorage
from inbox_cockpit.workspace import WorkspaceStore

T0 = 1_767_225_600_000  # 2026-01-01T00:00:00Z


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def summaries(storage, events, clock) -> SummaryStore:
    return SummaryStore(storage, events, clock=clock)


@pytest.fixture
def workspaces(storage, clock) -> WorkspaceStore:
    return WorkspaceStore(storage, clock=clock)


@pytest.fixture
def history(storage, clock) -> GenerationHistory:
    return GenerationHistory(storage, clock=clock)


def make_metadata(
    thread_id: str = "T1",
    message_id: str = "M1",
    subject: str = "Quarterly numbers",
    sender: str = "alice@example.com",
    sender_name: str = "Alice",
    to: tuple[str, ...] = ("me@example.com",),
    cc: tuple[str, ...] = (),
) -> MessageMetadata:
    return MessageMetadata(
        thread_id=thread_id,
        message_id=message_id,
        subject=subject,
        sender_email=sender,
        sender_name=sender_name,
        to_list=[Recipient(email=a) for a in to],
        cc_list=[Recipient(email=a) for a in cc],
    )

