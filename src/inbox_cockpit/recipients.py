"""Recipient resolution for replies, new messages and forwards.

Rows are built from the header (sender, To, Cc), extended by addresses
found in the body and by manual additions, and grouped into To/Cc/Bcc.
One row per normalized address; origins only accumulate.

Presets:
- reply:    sender -> To, everything else excluded
- replyAll: reply + every header To/Cc row -> Cc
- custom:   no automatic change; any manual edit switches to custom
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .models import ROLES, MessageMetadata, RecipientRow


_MAILTO = re.compile(r"mailto:([A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,})", re.IGNORECASE)
_ADDRESS = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_LEADING = re.compile(r"^[<(\[]+")
_TRAILING = re.compile(r"[>)\],.;:\s]+$")


@dataclass
class GroupedRecipients:
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to or self.cc or self.bcc)


def normalize_email_candidate(raw: str | None) -> str:
    """Lower-cased address without wrapping brackets/punctuation, or ""."""
    s = str(raw or "").strip()
    s = _LEADING.sub("", s)
    s = _TRAILING.sub("", s)
    s = s.strip().lower()
    if "@" not in s or len(s) < 5:
        return ""
    return s


def extract_emails_from_text(text: str | None) -> list[str]:
    """Addresses in *text*: mailto links first, then bare ones. Deduplicated."""
    s = str(text or "")
    found = [m.group(1) for m in _MAILTO.finditer(s)]
    found.extend(m.group(0) for m in _ADDRESS.finditer(s))

    seen: set[str] = set()
    clean: list[str] = []
    for candidate in found:
        email = normalize_email_candidate(candidate)
        if not email or email in seen:
            continue
        seen.add(email)
        clean.append(email)
    return clean


def _find(rows: list[RecipientRow], email: str) -> RecipientRow | None:
    for row in rows:
        if row.email == email:
            return row
    return None


def build_header_rows(metadata: MessageMetadata, my_email: str = "") -> list[RecipientRow]:
    """Rows for sender/To/Cc, excluding the local user. All start excluded."""
    me = normalize_email_candidate(my_email)
    rows: list[RecipientRow] = []

    def push(address: str, name: str, origin: str) -> None:
        email = normalize_email_candidate(address)
        if not email or (me and email == me):
            return
        existing = _find(rows, email)
        if existing is not None:
            existing.merge_origins(origin)
            if not existing.name and name:
                existing.name = name
            return
        rows.append(RecipientRow(email=email, name=name, origins=[origin]))

    push(metadata.sender_email, metadata.sender_name, "from")
    for r in metadata.to_list:
        push(r.email, r.name, "to")
    for r in metadata.cc_list:
        push(r.email, r.name, "cc")
    return rows


def apply_preset(
    rows: list[RecipientRow],
    preset: str,
    sender_email: str = "",
    sender_name: str = "",
    my_email: str = "",
) -> list[RecipientRow]:
    """Apply *preset* to *rows* in place and return them."""
    if preset == "custom":
        return rows
    if preset not in ("reply", "replyAll"):
        raise ValueError(f"Unknown recipient preset: {preset!r}")

    me = normalize_email_candidate(my_email)
    sender = normalize_email_candidate(sender_email)

    for row in rows:
        row.include = False
        row.role = "cc"

    if sender and sender != me:
        row = _find(rows, sender)
        if row is not None:
            row.include = True
            row.role = "to"
        else:
            rows.insert(
                0,
                RecipientRow(
                    email=sender,
                    name=sender_name,
                    origins=["from"],
                    include=True,
                    role="to",
                ),
            )

    if preset == "replyAll":
        skip = {e for e in (me, sender) if e}
        for row in rows:
            if row.email in skip or not row.has_origin("to", "cc"):
                continue
            row.include = True
            row.role = "cc"
    return rows


def group_recipients(rows: list[RecipientRow]) -> GroupedRecipients:
    """Included rows bucketed by role, deduplicated by (role, address)."""
    grouped = GroupedRecipients()
    seen: set[tuple[str, str]] = set()
    for row in rows:
        if not row.include:
            continue
        email = normalize_email_candidate(row.email)
        if not email or (row.role, email) in seen:
            continue
        seen.add((row.role, email))
        if row.role == "to":
            grouped.to.append(email)
        elif row.role == "cc":
            grouped.cc.append(email)
        else:
            grouped.bcc.append(email)
    return grouped


class RecipientBook:
    """Recipient rows and preset for the email currently displayed."""

    def __init__(self, my_email: str = "") -> None:
        self._my_email = normalize_email_candidate(my_email)
        self._sender_email = ""
        self._sender_name = ""
        self.rows: list[RecipientRow] = []
        self.preset = "reply"

    @property
    def my_email(self) -> str:
        return self._my_email

    def rebuild(self, metadata: MessageMetadata, preset: str = "reply") -> None:
        """Start over from the header of a newly selected email."""
        self._sender_email = metadata.sender_email
        self._sender_name = metadata.sender_name
        self.rows = build_header_rows(metadata, self._my_email)
        self.apply_preset(preset)

    def apply_preset(self, preset: str) -> None:
        apply_preset(
            self.rows, preset, self._sender_email, self._sender_name, self._my_email
        )
        self.preset = preset

    def harvest_body(self, text: str) -> int:
        """Merge addresses found in *text*. Returns how many rows were added.

        Rows already present only gain the "body" origin; their include and
        role are left as the user set them.
        """
        added = 0
        for email in extract_emails_from_text(text):
            if self._my_email and email == self._my_email:
                continue
            row = _find(self.rows, email)
            if row is not None:
                row.merge_origins("body")
                continue
            self.rows.append(RecipientRow(email=email, origins=["body"]))
            added += 1
        return added

    def find(self, email: str) -> RecipientRow | None:
        return _find(self.rows, normalize_email_candidate(email))

    def set_include(self, email: str, include: bool) -> bool:
        row = self.find(email)
        if row is None:
            return False
        self.preset = "custom"
        row.include = include
        return True

    def set_role(self, email: str, role: str) -> bool:
        if role not in ROLES:
            raise ValueError(f"Unknown recipient role: {role!r}")
        row = self.find(email)
        if row is None:
            return False
        self.preset = "custom"
        row.role = role
        return True

    def add_manual(self, email: str, role: str = "bcc") -> bool:
        """Add (or re-include) an address typed by the user."""
        if role not in ROLES:
            raise ValueError(f"Unknown recipient role: {role!r}")
        normalized = normalize_email_candidate(email)
        if not normalized:
            return False
        self.preset = "custom"
        row = _find(self.rows, normalized)
        if row is None:
            self.rows.append(
                RecipientRow(email=normalized, origins=["manual"], include=True, role=role)
            )
        else:
            row.merge_origins("manual")
            row.include = True
            row.role = role
        return True

    def visible_rows(self, include_body_emails: bool = True) -> list[RecipientRow]:
        if include_body_emails:
            return list(self.rows)
        return [r for r in self.rows if r.origins != ["body"]]

    def group(self) -> GroupedRecipients:
        return group_recipients(self.rows)
