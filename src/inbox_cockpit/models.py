"""Data models for the cockpit core.

Plain dataclasses: the email being displayed, cached records, the per-email
workspace and recipient rows. Serialized forms use camelCase keys so the
JSON stays readable by every view that shares the local store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from .conventions import RESULT_SLOT_COUNT

T = TypeVar("T")

Action = Literal["summarize", "reply", "rewrite", "tasks"]
RecipientPreset = Literal["reply", "replyAll", "custom"]
RecipientRole = Literal["to", "cc", "bcc"]
RecipientOrigin = Literal["from", "to", "cc", "body", "manual"]

ACTIONS: tuple[str, ...] = ("summarize", "reply", "rewrite", "tasks")
PRESETS: tuple[str, ...] = ("reply", "replyAll", "custom")
ROLES: tuple[str, ...] = ("to", "cc", "bcc")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return default


@dataclass
class Recipient:
    """An address with optional display name, as reported by the host."""

    email: str
    name: str = ""

    @classmethod
    def from_host(cls, raw: Any) -> Recipient | None:
        """Accept a plain string or a host dict; None if there is no address."""
        if isinstance(raw, str):
            email, name = raw, ""
        elif isinstance(raw, dict):
            email = raw.get("email") or raw.get("emailAddress") or ""
            name = raw.get("name") or raw.get("displayName") or ""
        else:
            return None
        email = _text(email)
        if not email:
            return None
        return cls(email=email, name=_text(name))


@dataclass
class MessageMetadata:
    """What the host reports about the currently displayed email.

    Every field may be empty; compose-mode items in particular often lack a
    sender and a message id.
    """

    thread_id: str = ""
    message_id: str = ""
    item_id: str = ""
    subject: str = ""
    sender_email: str = ""
    sender_name: str = ""
    to_list: list[Recipient] = field(default_factory=list)
    cc_list: list[Recipient] = field(default_factory=list)
    received_at: str = ""

    @property
    def primary_recipient(self) -> str:
        return self.to_list[0].email if self.to_list else ""

    @property
    def sender_display(self) -> str:
        if self.sender_name:
            return f"{self.sender_name} <{self.sender_email}>"
        return self.sender_email

    @classmethod
    def from_host(cls, data: Any) -> MessageMetadata:
        """Build from a host-shaped dict. Never raises."""
        if not isinstance(data, dict):
            return cls()

        def pick(*keys: str) -> str:
            for key in keys:
                value = _text(data.get(key))
                if value:
                    return value
            return ""

        def recipients(*keys: str) -> list[Recipient]:
            for key in keys:
                raw = data.get(key)
                if isinstance(raw, list):
                    found = [Recipient.from_host(r) for r in raw]
                    return [r for r in found if r is not None]
            return []

        return cls(
            thread_id=pick("threadId", "thread_id", "conversationId"),
            message_id=pick("messageId", "message_id", "internetMessageId"),
            item_id=pick("itemId", "item_id", "id"),
            subject=pick("subject"),
            sender_email=pick("senderEmail", "sender_email", "fromEmail"),
            sender_name=pick("senderName", "sender_name", "fromName"),
            to_list=recipients("toList", "to_list", "toRecipients"),
            cc_list=recipients("ccList", "cc_list", "ccRecipients"),
            received_at=pick("receivedAt", "received_at", "receivedDateTimeIso"),
        )


@dataclass
class CacheRecord(Generic[T]):
    """One value stored under an email identity, stamped with its write time."""

    value: T
    timestamp_ms: int


@dataclass
class SummaryRecord:
    text: str
    thread_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "conversationId": self.thread_id}

    @classmethod
    def from_dict(cls, data: Any) -> SummaryRecord:
        if isinstance(data, str):
            return cls(text=data)
        if not isinstance(data, dict):
            raise ValueError("summary record must be an object")
        return cls(
            text=str(data.get("text") or ""),
            thread_id=str(data.get("conversationId") or ""),
        )


@dataclass
class ResultSlot:
    """One of the result variants ("Option 1/2/3") of a workspace."""

    html: str = ""
    text: str = ""
    timestamp_ms: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.html or self.text)

    def to_dict(self) -> dict[str, Any]:
        return {"html": self.html, "text": self.text, "ts": self.timestamp_ms}

    @classmethod
    def from_dict(cls, data: Any) -> ResultSlot:
        if not isinstance(data, dict):
            return cls()
        return cls(
            html=str(data.get("html") or ""),
            text=str(data.get("text") or ""),
            timestamp_ms=_int(data.get("ts")),
        )


def empty_slots() -> list[ResultSlot]:
    return [ResultSlot() for _ in range(RESULT_SLOT_COUNT)]


@dataclass
class Workspace:
    """Per-email compose state kept while the user moves between emails.

    legacy_html / legacy_text mirror the active slot. Older records only
    had those two fields; from_dict migrates them into slot 0.
    """

    identity: str
    thread_id: str = ""
    subject: str = ""
    template_id: str = ""
    compose_notes: str = ""
    rewrite_text: str = ""
    recipient_preset: str = "reply"
    reply_all: bool = False
    include_body_emails: bool = True
    attach_original_item: bool = False
    active_slot: int = 0
    slots: list[ResultSlot] = field(default_factory=empty_slots)
    legacy_html: str = ""
    legacy_text: str = ""

    @property
    def active(self) -> ResultSlot:
        return self.slots[self.active_slot]

    def set_active_result(self, html: str, text: str, timestamp_ms: int) -> None:
        self.slots[self.active_slot] = ResultSlot(html, text, timestamp_ms)
        self.legacy_html = html
        self.legacy_text = text

    def to_dict(self) -> dict[str, Any]:
        active = self.active
        return {
            "key": self.identity,
            "conversationId": self.thread_id,
            "subject": self.subject,
            "tplPickId": self.template_id,
            "composeNotes": self.compose_notes,
            "rewriteText": self.rewrite_text,
            "recipientPreset": self.recipient_preset,
            "replyAll": self.reply_all,
            "includeBodyEmails": self.include_body_emails,
            "attachOriginalItem": self.attach_original_item,
            "activeOption": self.active_slot,
            "results": [slot.to_dict() for slot in self.slots],
            "htmlOut": active.html,
            "textOut": active.text,
        }

    @classmethod
    def from_dict(cls, data: Any, identity: str = "") -> Workspace:
        if not isinstance(data, dict):
            raise ValueError("workspace record must be an object")

        raw_slots = data.get("results")
        slots = empty_slots()
        if isinstance(raw_slots, list):
            for i, raw in enumerate(raw_slots[:RESULT_SLOT_COUNT]):
                slots[i] = ResultSlot.from_dict(raw)

        legacy_html = str(data.get("htmlOut") or "")
        legacy_text = str(data.get("textOut") or "")
        if all(slot.is_empty for slot in slots) and (legacy_html or legacy_text):
            slots[0] = ResultSlot(legacy_html, legacy_text, _int(data.get("ts")))

        active = _int(data.get("activeOption"))
        active = max(0, min(RESULT_SLOT_COUNT - 1, active))

        preset = data.get("recipientPreset")
        include_body = data.get("includeBodyEmails")
        return cls(
            identity=identity or str(data.get("key") or ""),
            thread_id=str(data.get("conversationId") or ""),
            subject=str(data.get("subject") or ""),
            template_id=str(data.get("tplPickId") or ""),
            compose_notes=str(data.get("composeNotes") or ""),
            rewrite_text=str(data.get("rewriteText") or ""),
            recipient_preset=preset if preset in PRESETS else "reply",
            reply_all=bool(data.get("replyAll")),
            include_body_emails=include_body if isinstance(include_body, bool) else True,
            attach_original_item=bool(data.get("attachOriginalItem")),
            active_slot=active,
            slots=slots,
            legacy_html=legacy_html,
            legacy_text=legacy_text,
        )


@dataclass
class GenerationHistoryEntry:
    """One generated output, appended to the history list and never edited."""

    id: str
    timestamp_ms: int
    email_identity: str
    thread_id: str = ""
    subject: str = ""
    html: str | None = None
    text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "ts": self.timestamp_ms,
            "emailKey": self.email_identity,
            "conversationId": self.thread_id,
            "subject": self.subject,
        }
        if self.html:
            data["html"] = self.html
        if self.text:
            data["text"] = self.text
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationHistoryEntry:
        thread_id = str(data.get("conversationId") or "")
        identity = str(data.get("emailKey") or "")
        if not identity and thread_id:
            # v1 entries were keyed by thread only
            identity = f"cid:{thread_id}"
        return cls(
            id=str(data.get("id") or ""),
            timestamp_ms=_int(data.get("ts")),
            email_identity=identity,
            thread_id=thread_id,
            subject=str(data.get("subject") or ""),
            html=data.get("html") or None,
            text=data.get("text") or None,
        )


@dataclass
class RecipientRow:
    """One addressable recipient for the current email."""

    email: str
    name: str = ""
    origins: list[str] = field(default_factory=list)
    include: bool = False
    role: str = "cc"

    def has_origin(self, *origins: str) -> bool:
        return any(o in self.origins for o in origins)

    def merge_origins(self, *origins: str) -> None:
        for origin in origins:
            if origin not in self.origins:
                self.origins.append(origin)
