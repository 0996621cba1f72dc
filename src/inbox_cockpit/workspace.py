"""Per-email workspace persistence with coalesced writes.

Typing in the notes box changes the workspace on every keystroke. The
WorkspaceWriter keeps the latest staged copy per identity and writes it
once the input settles (flush_delay_ms after the last stage), or when
flush() is called explicitly: on email switch, on shutdown, in tests.
"""

from __future__ import annotations

import asyncio
import copy
import logging

from .cache import Clock, TimeBoxedStore, now_ms
from .conventions import RETENTION_MS, WORKSPACE_FLUSH_DELAY_MS, WORKSPACE_KEY
from .models import Workspace
from .storage import PersistentStore

logger = logging.getLogger(__name__)


class WorkspaceStore(TimeBoxedStore[Workspace]):
    """Workspaces namespace."""

    def __init__(
        self,
        storage: PersistentStore,
        *,
        retention_ms: int = RETENTION_MS,
        clock: Clock = now_ms,
    ) -> None:
        super().__init__(
            storage,
            WORKSPACE_KEY,
            encode=Workspace.to_dict,
            decode=Workspace.from_dict,
            retention_ms=retention_ms,
            clock=clock,
        )

    def get_or_new(self, identity: str, thread_id: str = "", subject: str = "") -> Workspace:
        workspace = self.get(identity)
        if workspace is None:
            return Workspace(identity=identity, thread_id=thread_id, subject=subject)
        workspace.identity = identity
        return workspace


class WorkspaceWriter:
    """Debounced writer in front of a WorkspaceStore."""

    def __init__(
        self,
        store: WorkspaceStore,
        *,
        flush_delay_ms: int = WORKSPACE_FLUSH_DELAY_MS,
    ) -> None:
        self._store = store
        self._flush_delay_ms = flush_delay_ms
        self._pending: dict[str, Workspace] = {}
        self._handle: asyncio.TimerHandle | None = None

    @property
    def store(self) -> WorkspaceStore:
        return self._store

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def pending(self, identity: str) -> Workspace | None:
        return self._pending.get(identity)

    def stage(self, workspace: Workspace) -> None:
        """Remember *workspace* for the next flush, replacing earlier stages."""
        if not workspace.identity:
            return
        self._pending[workspace.identity] = copy.deepcopy(workspace)
        self._reschedule()

    def discard(self, identity: str) -> None:
        self._pending.pop(identity, None)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _reschedule(self) -> None:
        self._cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: writes wait for an explicit flush()
            return
        self._handle = loop.call_later(self._flush_delay_ms / 1000, self.flush)

    def flush(self) -> int:
        """Write every staged workspace now. Returns how many were written."""
        self._cancel()
        pending, self._pending = self._pending, {}
        written = 0
        for identity, workspace in pending.items():
            if self._store.upsert(identity, workspace):
                written += 1
        if pending:
            logger.debug("Flushed %d workspace(s), %d persisted", len(pending), written)
        return written
