"""Getting generated content into a draft.

Hosts expose different subsets of the body and form APIs, so every entry
point walks a fallback chain and reports which step worked. Nothing raises
past the inserter: host errors, unsupported calls and exceptions thrown by
a host all end as an InsertionOutcome with ``ok=False``.

Draft insertion order:

1. replace the previously inserted marked block (body read + write)
2. insert at the cursor
3. prepend to the body
4. append to the body
5. overwrite the whole body (destructive, last resort)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .composer import replace_marked_block, wrap_with_marker
from .host import FormInput, FormRequest, HostCapability, HostMail, HostResult, ItemAttachment
from .recipients import GroupedRecipients
from .text import escape_html, make_forward_subject, make_reply_subject

logger = logging.getLogger(__name__)

NOTICE_REPLACED = "Content replaced in the draft."
NOTICE_CURSOR = "Inserted into the draft at the cursor."
NOTICE_PREPEND = "Inserted at the top of the draft."
NOTICE_APPEND = "Inserted at the end of the draft."
NOTICE_OVERWRITE = (
    "Inserted by replacing the draft body; this host cannot insert at the cursor."
)
NOTICE_CUSTOM_REPLY = (
    "In a thread reply the mail client decides To/Cc. "
    "Use a new message to control recipients."
)
NOTICE_NO_ATTACHMENT = "This host could not attach the original; opened without it."
NOTICE_FORWARD_NO_RECIPIENTS = (
    "This host could not fill recipients in the forward; add them manually."
)
NOTICE_FORWARD_AS_NEW = (
    "This host has no forward form; opened a new FW message with the original in the body."
)


@dataclass
class InsertionOutcome:
    ok: bool
    method: str = ""
    notice: str = ""
    error: str = ""


HostCall = Callable[..., Awaitable[HostResult[Any]]]


async def _attempt(name: str, call: HostCall, *args: Any) -> HostResult[Any]:
    try:
        result = await call(*args)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Host call %s raised", name, exc_info=True)
        return HostResult.failure(str(exc) or exc.__class__.__name__)
    if not result.ok:
        logger.debug("Host call %s failed: %s", name, result.error)
    return result


def _original_html(original_body: str) -> str:
    if not original_body:
        return ""
    return (
        '<hr style="border:none;border-top:1px solid #ddd;margin:16px 0"/>'
        '<div style="color:#666;font-size:12px;margin-bottom:6px"><strong>Original message</strong></div>'
        f'<div style="white-space:pre-wrap;font-family:inherit;font-size:12px">{escape_html(original_body)}</div>'
    )


class DraftInserter:
    """Fallback chains over a HostMail."""

    def __init__(self, host: HostMail) -> None:
        self._host = host

    async def _replace_marked(self, block: str) -> bool:
        host = self._host
        if not (
            host.supports(HostCapability.BODY_READ) and host.supports(HostCapability.BODY_WRITE)
        ):
            return False
        current = await _attempt("get_body_html", host.get_body_html)
        if not current.ok:
            return False
        replaced = replace_marked_block(str(current.value or ""), block)
        if replaced is None:
            return False
        written = await _attempt("set_body_html", host.set_body_html, replaced)
        return written.ok

    async def insert_into_current_draft(self, html: str) -> InsertionOutcome:
        """Put *html* (content plus signature) into the open draft."""
        if not html:
            return InsertionOutcome(ok=False, error="Nothing to insert")

        block = wrap_with_marker(html)
        if await self._replace_marked(block):
            return InsertionOutcome(ok=True, method="replaced", notice=NOTICE_REPLACED)

        host = self._host
        steps: list[tuple[str, HostCapability, HostCall, str]] = [
            ("cursor", HostCapability.INSERT_AT_CURSOR, host.insert_at_cursor, NOTICE_CURSOR),
            ("prepend", HostCapability.PREPEND, host.prepend_body, NOTICE_PREPEND),
            ("append", HostCapability.APPEND, host.append_body, NOTICE_APPEND),
            ("overwrite", HostCapability.BODY_WRITE, host.set_body_html, NOTICE_OVERWRITE),
        ]
        last_error = "This host does not allow inserting into the draft"
        for method, capability, call, notice in steps:
            if not host.supports(capability):
                continue
            result = await _attempt(method, call, block)
            if result.ok:
                return InsertionOutcome(ok=True, method=method, notice=notice)
            last_error = result.error or last_error
        return InsertionOutcome(ok=False, error=last_error)

    async def _open_form(
        self, kind: str, call: HostCall, forms: list[tuple[FormInput, str]]
    ) -> InsertionOutcome | None:
        """Try each (form, notice) in order; first success wins."""
        for form, notice in forms:
            result = await _attempt(kind, call, form)
            if result.ok:
                return InsertionOutcome(ok=True, method=kind, notice=notice)
        return None

    async def open_reply(
        self,
        html: str,
        preset: str = "reply",
        attachment: ItemAttachment | None = None,
    ) -> InsertionOutcome:
        """Open a reply (or reply-all) form in the thread with *html* as body."""
        if not html:
            return InsertionOutcome(ok=False, error="Nothing to insert")

        host = self._host
        notice = NOTICE_CUSTOM_REPLY if preset == "custom" else ""
        structured = FormRequest(html_body=html, attachments=[attachment] if attachment else [])
        forms: list[tuple[FormInput, str]] = [
            (structured, notice),
            (html, NOTICE_NO_ATTACHMENT if attachment else notice),
        ]

        candidates: list[tuple[str, HostCapability, HostCall]] = []
        if preset == "replyAll":
            candidates.append(
                ("reply_all", HostCapability.REPLY_ALL_FORM, host.open_reply_all_form)
            )
        candidates.append(("reply", HostCapability.REPLY_FORM, host.open_reply_form))

        for kind, capability, call in candidates:
            if not host.supports(capability):
                continue
            outcome = await self._open_form(kind, call, forms)
            if outcome is not None:
                return outcome
        return InsertionOutcome(ok=False, error="Could not open a reply in the thread")

    async def open_new_message(
        self,
        html: str,
        recipients: GroupedRecipients,
        subject: str = "",
        attachment: ItemAttachment | None = None,
    ) -> InsertionOutcome:
        """Open a new message to the selected recipients."""
        if not html:
            return InsertionOutcome(ok=False, error="Nothing to insert")
        if recipients.is_empty:
            return InsertionOutcome(ok=False, error="Choose at least one recipient (To/Cc/Bcc)")

        host = self._host
        if not host.supports(HostCapability.NEW_MESSAGE_FORM):
            return InsertionOutcome(ok=False, error="This host cannot open a new message")

        full = FormRequest(
            to=list(recipients.to),
            cc=list(recipients.cc),
            bcc=list(recipients.bcc),
            subject=make_reply_subject(subject),
            html_body=html,
            attachments=[attachment] if attachment else [],
        )
        forms: list[tuple[FormInput, str]] = [(full, "")]
        if attachment:
            bare = FormRequest(
                to=full.to, cc=full.cc, bcc=full.bcc, subject=full.subject, html_body=html
            )
            forms.append((bare, NOTICE_NO_ATTACHMENT))
        forms.append((html, ""))

        outcome = await self._open_form("new_message", host.open_new_message_form, forms)
        if outcome is not None:
            return outcome
        return InsertionOutcome(ok=False, error="Could not open a new message")

    async def open_forward(
        self,
        html: str,
        recipients: GroupedRecipients,
        subject: str = "",
        original_body: str = "",
    ) -> InsertionOutcome:
        """Open a forward, or a new FW: message when the host has no forward form."""
        if not html:
            return InsertionOutcome(ok=False, error="Nothing to insert")

        host = self._host
        if host.supports(HostCapability.FORWARD_FORM):
            forms: list[tuple[FormInput, str]] = [
                (FormRequest(to=list(recipients.to), cc=list(recipients.cc), html_body=html), ""),
                (html, "" if recipients.is_empty else NOTICE_FORWARD_NO_RECIPIENTS),
                (FormRequest(html_body=html), ""),
            ]
            outcome = await self._open_form("forward", host.open_forward_form, forms)
            if outcome is not None:
                return outcome

        if host.supports(HostCapability.NEW_MESSAGE_FORM):
            form = FormRequest(
                to=list(recipients.to),
                cc=list(recipients.cc),
                bcc=list(recipients.bcc),
                subject=make_forward_subject(subject),
                html_body=html + _original_html(original_body),
            )
            result = await _attempt("new_message", host.open_new_message_form, form)
            if result.ok:
                return InsertionOutcome(
                    ok=True, method="forward_as_new", notice=NOTICE_FORWARD_AS_NEW
                )
        return InsertionOutcome(ok=False, error="Could not open a forward")
