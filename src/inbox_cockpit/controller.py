"""Generation lifecycle for the email currently displayed.

The user can switch emails while a generation is still running. Every run
captures a GenerationToken at start; when the result arrives it goes to the
visible workspace only if the displayed identity still matches the token.
Otherwise it is written into the originating email's stored workspace, so
output never leaks into another email's view and is never lost.

Summaries bypass the workspace and go straight to the SummaryStore, which
broadcasts SUMMARY_UPDATED to every view.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any

from .cache import Clock, SummaryStore, now_ms
from .composer import build_final_html
from .conventions import RESULT_SLOT_COUNT, SUMMARY_LOCALE, SUMMARY_UPDATED
from .events import EventBus, SummaryUpdated
from .generator import EmailContext, GenerationRequest, Generator, build_generator
from .history import GenerationHistory
from .host import HostMail, ItemAttachment
from .identity import item_token, resolve_identity
from .insertion import DraftInserter, InsertionOutcome
from .models import (
    ACTIONS,
    GenerationHistoryEntry,
    MessageMetadata,
    RecipientRow,
    SummaryRecord,
    Workspace,
)
from .recipients import RecipientBook
from .schema import CockpitConfig
from .storage import PersistentStore
from .text import (
    apply_template_vars,
    safe_attachment_name,
    sanitize_ai_html,
    strip_html,
    trim_email_body,
    trim_email_body_full,
)
from .workspace import WorkspaceStore, WorkspaceWriter

logger = logging.getLogger(__name__)

# Workspace fields the UI may set through update_workspace()
EDITABLE_FIELDS = frozenset(
    {"compose_notes", "rewrite_text", "reply_all", "attach_original_item"}
)

NOTICE_UPDATED = "Result updated."
NOTICE_SAVED_ELSEWHERE = "A result for another email finished and was saved with that email."


@dataclass(frozen=True)
class GenerationToken:
    identity: str
    thread_id: str
    action: str
    sequence: int


@dataclass
class GenerationOutcome:
    status: str  # committed | redirected | summarized | failed | skipped
    token: GenerationToken | None = None
    error: str = ""


class GenerationController:
    """Owns the displayed email's workspace, recipients and generations."""

    def __init__(
        self,
        host: HostMail,
        generator: Generator,
        summaries: SummaryStore,
        history: GenerationHistory,
        workspaces: WorkspaceStore,
        writer: WorkspaceWriter | None = None,
        config: CockpitConfig | None = None,
        clock: Clock = now_ms,
        *,
        events: EventBus | None = None,
    ) -> None:
        self._host = host
        self._generator = generator
        self._summaries = summaries
        self._history = history
        self._workspaces = workspaces
        self._writer = writer or WorkspaceWriter(workspaces)
        self._config = config or CockpitConfig()
        self._clock = clock
        self._inserter = DraftInserter(host)

        my_email = self._config.compose.my_email or host.user_email()
        self.recipients = RecipientBook(my_email)
        self.metadata: MessageMetadata | None = None
        self.identity = ""
        self._item_token = ""
        self.workspace: Workspace | None = None
        self.body_text = ""
        self.notice = ""
        self.error = ""
        self.summary_revision = 0

        self._sequence = itertools.count(1)
        self._busy: set[tuple[str, str]] = set()
        self._auto_in_flight: set[str] = set()
        self._auto_last_ms: dict[str, int] = {}
        self._auto_tasks: set[asyncio.Task[Any]] = set()

        self._unsubscribe = None
        if events is not None:
            self._unsubscribe = events.subscribe(SUMMARY_UPDATED, self._on_summary_updated)

    @classmethod
    def from_config(
        cls,
        host: HostMail,
        storage: PersistentStore,
        config: CockpitConfig,
        *,
        events: EventBus | None = None,
        generator: Generator | None = None,
        clock: Clock = now_ms,
    ) -> GenerationController:
        """Wire the stores over *storage* the way *config* asks."""
        retention = config.cache.retention_ms
        workspaces = WorkspaceStore(storage, retention_ms=retention, clock=clock)
        return cls(
            host,
            generator or build_generator(config),
            SummaryStore(storage, events, retention_ms=retention, clock=clock),
            GenerationHistory(
                storage,
                retention_ms=retention,
                max_entries=config.cache.history_max_entries,
                clock=clock,
            ),
            workspaces,
            WorkspaceWriter(workspaces, flush_delay_ms=config.cache.workspace_flush_delay_ms),
            config,
            clock,
            events=events,
        )

    # ------------------------------------------------------------------
    # Displayed email
    # ------------------------------------------------------------------

    @property
    def summary(self) -> str:
        if not self.identity:
            return ""
        return self._summaries.get_text(self.identity)

    def _on_summary_updated(self, event: SummaryUpdated) -> None:
        if event.email_identity == self.identity:
            self.summary_revision += 1

    async def refresh(self) -> asyncio.Task[Any] | None:
        """Follow the host to the email it displays now.

        Returns the auto-summary task when one was scheduled.
        """
        try:
            result = await self._host.get_current_item_metadata()
        except Exception:  # noqa: BLE001
            logger.warning("Host failed to report the current item", exc_info=True)
            return None
        if not result.ok or result.value is None:
            return None

        metadata = result.value
        token = item_token(metadata)
        identity = resolve_identity(metadata)
        if identity == self.identity:
            # Spurious "item changed" events repeat the same token
            if token != self._item_token:
                self._item_token = token
                self.metadata = metadata
            return None

        # Pending edits belong to the previous email
        self._writer.flush()

        self.metadata = metadata
        self.identity = identity
        self._item_token = token
        self.workspace = self._workspaces.get_or_new(
            identity, metadata.thread_id, metadata.subject
        )
        self.recipients.rebuild(metadata, "reply")
        self.workspace.recipient_preset = "reply"
        self.body_text = ""
        self.notice = ""
        self.error = ""
        logger.debug("Displaying %s", identity)

        try:
            body = await self._host.get_body_text()
        except Exception:  # noqa: BLE001
            logger.warning("Host failed to read the body of %s", identity, exc_info=True)
            body = None
        if self.identity != identity:
            return None
        self.body_text = str(body.value or "") if body is not None and body.ok else ""
        if self.workspace.include_body_emails:
            self.recipients.harvest_body(self.body_text)
        return self.maybe_auto_summarize()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _busy_key(self, action: str, identity: str) -> tuple[str, str]:
        # Summaries run per email; the other actions share one control each
        return (action, identity if action == "summarize" else "")

    def is_busy(self, action: str) -> bool:
        return self._busy_key(action, self.identity) in self._busy

    def _build_request(self, action: str, input_text: str | None) -> GenerationRequest:
        metadata = self.metadata or MessageMetadata()
        workspace = self.workspace
        compose = self._config.compose

        if input_text is None:
            if action == "reply" and workspace is not None:
                input_text = workspace.compose_notes
            elif action == "rewrite" and workspace is not None:
                input_text = workspace.rewrite_text
            else:
                input_text = ""

        if action == "reply":
            grouped = self.recipients.group()
            to, cc, bcc = grouped.to, grouped.cc, grouped.bcc
        else:
            to = [r.email for r in metadata.to_list]
            cc = [r.email for r in metadata.cc_list]
            bcc = []

        scope = compose.body_scope
        body = trim_email_body_full(self.body_text) if scope == "full" else trim_email_body(
            self.body_text
        )
        return GenerationRequest(
            action=action,
            mode=self._config.generator.quality,
            locale=SUMMARY_LOCALE if action == "summarize" else compose.reply_language,
            tone=compose.tone,
            email=EmailContext(
                subject=metadata.subject,
                sender=metadata.sender_display,
                to=to,
                cc=cc,
                bcc=bcc,
                body_scope=scope,
                body_text=body,
            ),
            input_text=input_text,
        )

    async def run(self, action: str, *, input_text: str | None = None) -> GenerationOutcome:
        """Generate *action* for the displayed email and route the result."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown action: {action!r}")
        if not self.identity or self.workspace is None:
            return GenerationOutcome("skipped", error="No email selected")
        if self.is_busy(action):
            return GenerationOutcome("skipped", error=f"{action} already running")

        request = self._build_request(action, input_text)
        if action == "rewrite" and not request.input_text.strip():
            self.error = "Nothing to rewrite"
            return GenerationOutcome("skipped", error=self.error)

        token = GenerationToken(
            identity=self.identity,
            thread_id=self.workspace.thread_id or (self.metadata.thread_id if self.metadata else ""),
            action=action,
            sequence=next(self._sequence),
        )
        subject = self.metadata.subject if self.metadata else ""

        busy_key = self._busy_key(action, token.identity)
        self._busy.add(busy_key)
        self.error = ""
        self.notice = ""
        try:
            result = await self._generator.generate(request)
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            logger.warning("Generation %s for %s failed: %s", action, token.identity, message)
            if self.identity == token.identity:
                self.error = message
            return GenerationOutcome("failed", token, message)
        finally:
            self._busy.discard(busy_key)

        html = sanitize_ai_html(result.html)
        text = result.text or strip_html(html)
        return self._commit(token, subject, html, text)

    def _commit(
        self, token: GenerationToken, subject: str, html: str, text: str
    ) -> GenerationOutcome:
        now = self._clock()

        if token.action == "summarize":
            if not text.strip():
                logger.warning("Empty summary for %s; nothing stored", token.identity)
                if self.identity == token.identity:
                    self.error = "Empty summary"
                return GenerationOutcome("failed", token, "Empty summary")
            self._summaries.upsert(
                token.identity, SummaryRecord(text=text, thread_id=token.thread_id)
            )
            return GenerationOutcome("summarized", token)

        if token.identity == self.identity and self.workspace is not None:
            self.workspace.set_active_result(html, text, now)
            self._writer.stage(self.workspace)
            self.notice = NOTICE_UPDATED
            status = "committed"
        else:
            self._writer.flush()
            target = self._workspaces.get_or_new(token.identity, token.thread_id, subject)
            target.set_active_result(html, text, now)
            self._workspaces.upsert(token.identity, target)
            logger.info(
                "Result of %s for %s arrived after switching to %s; stored with its email",
                token.action,
                token.identity,
                self.identity,
            )
            self.notice = NOTICE_SAVED_ELSEWHERE
            status = "redirected"

        self._history.append(
            GenerationHistoryEntry(
                id=f"{token.identity}-{now}-{token.sequence}",
                timestamp_ms=now,
                email_identity=token.identity,
                thread_id=token.thread_id,
                subject=subject,
                html=html or None,
                text=text or None,
            )
        )
        return GenerationOutcome(status, token)

    # ------------------------------------------------------------------
    # Auto summary
    # ------------------------------------------------------------------

    def maybe_auto_summarize(self) -> asyncio.Task[Any] | None:
        """Schedule a summary for the displayed email if it needs one."""
        compose = self._config.compose
        identity = self.identity
        if not compose.auto_summary or not identity:
            return None
        if not self.body_text.strip():
            return None
        if identity in self._auto_in_flight:
            return None
        now = self._clock()
        last = self._auto_last_ms.get(identity)
        if last is not None and now - last < compose.auto_summary_throttle_ms:
            return None
        if self._summaries.get_text(identity).strip():
            return None

        self._auto_in_flight.add(identity)
        self._auto_last_ms[identity] = now
        task = asyncio.get_running_loop().create_task(self._auto_summarize(identity))
        self._auto_tasks.add(task)
        task.add_done_callback(self._auto_tasks.discard)
        return task

    async def _auto_summarize(self, identity: str) -> GenerationOutcome:
        try:
            await asyncio.sleep(self._config.compose.auto_summary_delay_ms / 1000)
            if self.identity != identity:
                return GenerationOutcome("skipped", error="Email changed")
            if self._summaries.get_text(identity).strip():
                return GenerationOutcome("skipped", error="Already summarized")
            return await self.run("summarize")
        finally:
            self._auto_in_flight.discard(identity)

    # ------------------------------------------------------------------
    # Workspace edits
    # ------------------------------------------------------------------

    def _require_workspace(self) -> Workspace:
        if self.workspace is None:
            raise RuntimeError("No email selected")
        return self.workspace

    def _stage(self) -> None:
        self._writer.stage(self._require_workspace())

    def select_slot(self, index: int) -> None:
        workspace = self._require_workspace()
        if not 0 <= index < RESULT_SLOT_COUNT:
            raise ValueError(f"Slot index out of range: {index}")
        workspace.active_slot = index
        workspace.legacy_html = workspace.active.html
        workspace.legacy_text = workspace.active.text
        self._stage()

    def edit_slot(self, *, html: str | None = None, text: str | None = None) -> None:
        """Replace the active slot content with a user edit."""
        workspace = self._require_workspace()
        active = workspace.active
        workspace.set_active_result(
            active.html if html is None else html,
            active.text if text is None else text,
            active.timestamp_ms,
        )
        self._stage()

    def update_workspace(self, **fields: Any) -> None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise TypeError(f"Not editable: {', '.join(sorted(unknown))}")
        workspace = self._require_workspace()
        for name, value in fields.items():
            setattr(workspace, name, value)
        self._stage()

    def pick_template(self, template_id: str) -> bool:
        """Select a reply template and fill the notes from it.

        An unknown or empty id only records the selection. Returns whether
        the notes were replaced.
        """
        workspace = self._require_workspace()
        workspace.template_id = template_id
        template = next(
            (t for t in self._config.compose.templates if t.id == template_id), None
        )
        if template is not None:
            workspace.compose_notes = apply_template_vars(
                template.body, self.metadata or MessageMetadata()
            )
        self._stage()
        return template is not None

    def set_include_body_emails(self, include: bool) -> None:
        self._require_workspace().include_body_emails = include
        if include:
            self.recipients.harvest_body(self.body_text)
        self._stage()

    def _sync_preset(self) -> None:
        self._require_workspace().recipient_preset = self.recipients.preset
        self._stage()

    def set_recipient_preset(self, preset: str) -> None:
        self.recipients.apply_preset(preset)
        self._sync_preset()

    def set_recipient_include(self, email: str, include: bool) -> bool:
        changed = self.recipients.set_include(email, include)
        if changed:
            self._sync_preset()
        return changed

    def set_recipient_role(self, email: str, role: str) -> bool:
        changed = self.recipients.set_role(email, role)
        if changed:
            self._sync_preset()
        return changed

    def add_recipient(self, email: str, role: str = "bcc") -> bool:
        added = self.recipients.add_manual(email, role)
        if added:
            self._sync_preset()
        return added

    def visible_recipients(self) -> list[RecipientRow]:
        include_body = self.workspace.include_body_emails if self.workspace else True
        return self.recipients.visible_rows(include_body)

    # ------------------------------------------------------------------
    # Draft output
    # ------------------------------------------------------------------

    def final_html(self) -> str:
        if self.workspace is None:
            return ""
        active = self.workspace.active
        return build_final_html(active.html, active.text, self._config.compose.signature)

    def _attachment(self) -> ItemAttachment | None:
        workspace = self.workspace
        metadata = self.metadata
        if workspace is None or metadata is None:
            return None
        if not workspace.attach_original_item or not metadata.item_id:
            return None
        return ItemAttachment(metadata.item_id, safe_attachment_name(metadata.subject))

    def _report(self, outcome: InsertionOutcome) -> InsertionOutcome:
        self.notice = outcome.notice
        self.error = "" if outcome.ok else outcome.error
        return outcome

    async def insert_into_draft(self) -> InsertionOutcome:
        return self._report(await self._inserter.insert_into_current_draft(self.final_html()))

    async def open_reply(self) -> InsertionOutcome:
        return self._report(
            await self._inserter.open_reply(
                self.final_html(), self.recipients.preset, self._attachment()
            )
        )

    async def open_new_message(self) -> InsertionOutcome:
        subject = self.metadata.subject if self.metadata else ""
        return self._report(
            await self._inserter.open_new_message(
                self.final_html(), self.recipients.group(), subject, self._attachment()
            )
        )

    async def open_forward(self) -> InsertionOutcome:
        subject = self.metadata.subject if self.metadata else ""
        return self._report(
            await self._inserter.open_forward(
                self.final_html(), self.recipients.group(), subject, self.body_text
            )
        )

    def close(self) -> None:
        """Persist pending edits and stop listening for summary updates."""
        self._writer.flush()
        for task in list(self._auto_tasks):
            task.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
