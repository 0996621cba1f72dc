"""Mail host collaborator.

The host is the mail client the cockpit runs inside: it reports the
displayed email, reads and writes the draft body and opens compose forms.
Hosts differ in what they support, so every capability is checkable with
``supports()`` and every call returns a HostResult instead of raising.

Form calls accept either a structured FormRequest or a plain HTML string;
older hosts only understand the string form.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from .models import MessageMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HostCapability(StrEnum):
    BODY_READ = "body_read"
    BODY_WRITE = "body_write"
    INSERT_AT_CURSOR = "insert_at_cursor"
    PREPEND = "prepend"
    APPEND = "append"
    REPLY_FORM = "reply_form"
    REPLY_ALL_FORM = "reply_all_form"
    FORWARD_FORM = "forward_form"
    NEW_MESSAGE_FORM = "new_message_form"


ALL_CAPABILITIES = frozenset(HostCapability)


@dataclass
class HostResult(Generic[T]):
    ok: bool
    value: T | None = None
    error: str = ""

    @classmethod
    def success(cls, value: T | None = None) -> HostResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> HostResult[T]:
        return cls(ok=False, error=error)


@dataclass
class ItemAttachment:
    """The displayed email, attached to a new draft as an item."""

    item_id: str
    name: str


@dataclass
class FormRequest:
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    subject: str = ""
    html_body: str = ""
    attachments: list[ItemAttachment] = field(default_factory=list)


FormInput = FormRequest | str


@runtime_checkable
class HostMail(Protocol):
    def supports(self, capability: HostCapability) -> bool: ...

    def user_email(self) -> str: ...

    async def get_current_item_metadata(self) -> HostResult[MessageMetadata]: ...

    async def get_body_text(self) -> HostResult[str]: ...

    async def get_body_html(self) -> HostResult[str]: ...

    async def set_body_html(self, html: str) -> HostResult[None]: ...

    async def insert_at_cursor(self, html: str) -> HostResult[None]: ...

    async def prepend_body(self, html: str) -> HostResult[None]: ...

    async def append_body(self, html: str) -> HostResult[None]: ...

    async def open_reply_form(self, form: FormInput) -> HostResult[None]: ...

    async def open_reply_all_form(self, form: FormInput) -> HostResult[None]: ...

    async def open_forward_form(self, form: FormInput) -> HostResult[None]: ...

    async def open_new_message_form(self, form: FormInput) -> HostResult[None]: ...


class MemoryHost:
    """In-memory host for the simulator and tests.

    ``body_text`` is the displayed email; ``draft_html`` is the compose body
    the insertion calls edit (the cursor sits at the start). Opened forms are
    recorded in ``opened_forms`` as ``(kind, form)`` pairs.
    """

    def __init__(
        self,
        metadata: MessageMetadata | None = None,
        *,
        body_text: str = "",
        draft_html: str = "",
        my_email: str = "",
        capabilities: set[HostCapability] | frozenset[HostCapability] = ALL_CAPABILITIES,
        reject_structured_forms: bool = False,
        reject_attachments: bool = False,
    ) -> None:
        self.metadata = metadata
        self.body_text = body_text
        self.draft_html = draft_html
        self.my_email = my_email
        self.capabilities = set(capabilities)
        self.reject_structured_forms = reject_structured_forms
        self.reject_attachments = reject_attachments
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.opened_forms: list[tuple[str, Any]] = []

    def show(self, metadata: MessageMetadata | None, body_text: str = "") -> None:
        """Display another email."""
        self.metadata = metadata
        self.body_text = body_text

    def fail(self, *operations: str) -> None:
        """Make the named operations return an error until cleared."""
        self.failing.update(operations)

    def supports(self, capability: HostCapability) -> bool:
        return capability in self.capabilities

    def user_email(self) -> str:
        return self.my_email

    def _begin(self, operation: str, capability: HostCapability | None = None) -> str | None:
        self.calls.append(operation)
        if capability is not None and capability not in self.capabilities:
            return f"{operation} not supported"
        if operation in self.failing:
            return f"{operation} failed"
        return None

    async def get_current_item_metadata(self) -> HostResult[MessageMetadata]:
        error = self._begin("get_current_item_metadata")
        if error:
            return HostResult.failure(error)
        if self.metadata is None:
            return HostResult.failure("No item selected")
        return HostResult.success(self.metadata)

    async def get_body_text(self) -> HostResult[str]:
        error = self._begin("get_body_text")
        if error:
            return HostResult.failure(error)
        return HostResult.success(self.body_text)

    async def get_body_html(self) -> HostResult[str]:
        error = self._begin("get_body_html", HostCapability.BODY_READ)
        if error:
            return HostResult.failure(error)
        return HostResult.success(self.draft_html)

    async def set_body_html(self, html: str) -> HostResult[None]:
        error = self._begin("set_body_html", HostCapability.BODY_WRITE)
        if error:
            return HostResult.failure(error)
        self.draft_html = html
        return HostResult.success()

    async def insert_at_cursor(self, html: str) -> HostResult[None]:
        error = self._begin("insert_at_cursor", HostCapability.INSERT_AT_CURSOR)
        if error:
            return HostResult.failure(error)
        self.draft_html = html + self.draft_html
        return HostResult.success()

    async def prepend_body(self, html: str) -> HostResult[None]:
        error = self._begin("prepend_body", HostCapability.PREPEND)
        if error:
            return HostResult.failure(error)
        self.draft_html = html + self.draft_html
        return HostResult.success()

    async def append_body(self, html: str) -> HostResult[None]:
        error = self._begin("append_body", HostCapability.APPEND)
        if error:
            return HostResult.failure(error)
        self.draft_html = self.draft_html + html
        return HostResult.success()

    def _open(self, kind: str, capability: HostCapability, form: FormInput) -> HostResult[None]:
        error = self._begin(kind, capability)
        if error:
            return HostResult.failure(error)
        if isinstance(form, FormRequest):
            if self.reject_structured_forms:
                return HostResult.failure("Structured form not accepted")
            if form.attachments and self.reject_attachments:
                return HostResult.failure("Attachments not accepted")
        self.opened_forms.append((kind, form))
        logger.debug("Opened %s form", kind)
        return HostResult.success()

    async def open_reply_form(self, form: FormInput) -> HostResult[None]:
        return self._open("reply", HostCapability.REPLY_FORM, form)

    async def open_reply_all_form(self, form: FormInput) -> HostResult[None]:
        return self._open("reply_all", HostCapability.REPLY_ALL_FORM, form)

    async def open_forward_form(self, form: FormInput) -> HostResult[None]:
        return self._open("forward", HostCapability.FORWARD_FORM, form)

    async def open_new_message_form(self, form: FormInput) -> HostResult[None]:
        return self._open("new_message", HostCapability.NEW_MESSAGE_FORM, form)
