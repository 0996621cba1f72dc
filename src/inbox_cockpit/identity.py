"""Stable identity for "the email currently open".

The host does not always report canonical identifiers: compose items and
some shared mailboxes come without a thread or message id. The resolver
prefers canonical ids and otherwise hashes the visible metadata, so the
same email always maps to the same cache slot.

Limitation: the fallback hash is not collision-free. Two emails that share
subject, sender and first recipient after normalization get the same key
and share a workspace.
"""

from __future__ import annotations

import re
from typing import Any

from .conventions import FALLBACK_IDENTITY_PREFIX, IDENTITY_SEPARATOR
from .models import MessageMetadata

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

_WHITESPACE = re.compile(r"\s+")


def _norm(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_subject(subject: Any) -> str:
    return _WHITESPACE.sub(" ", _norm(subject)).lower()


def normalize_address(address: Any) -> str:
    return _norm(address).lower()


def fnv1a_32(text: str) -> str:
    """32-bit FNV-1a over UTF-16 code units, unsigned, unpadded lower hex.

    UTF-16 code units keep keys identical to the ones computed by the
    browser client for text outside the BMP.
    """
    data = text.encode("utf-16-le", errors="surrogatepass")
    h = FNV_OFFSET_BASIS
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return format(h, "x")


def fallback_identity(subject: Any, sender: Any, recipient: Any) -> str:
    material = "|".join(
        [normalize_subject(subject), normalize_address(sender), normalize_address(recipient)]
    )
    return f"{FALLBACK_IDENTITY_PREFIX}{fnv1a_32(material)}"


def resolve_identity(metadata: MessageMetadata | None) -> str:
    """Derive the cache key for an email. Pure, total, deterministic."""
    if metadata is None:
        metadata = MessageMetadata()
    thread = _norm(metadata.thread_id)
    message = _norm(metadata.message_id)
    item = _norm(metadata.item_id)
    if thread and message:
        return f"{thread}{IDENTITY_SEPARATOR}{message}"
    if thread and item:
        return f"{thread}{IDENTITY_SEPARATOR}{item}"
    recipient = metadata.to_list[0].email if metadata.to_list else ""
    return fallback_identity(metadata.subject, metadata.sender_email, recipient)


def item_token(metadata: MessageMetadata | None) -> str:
    """Cheap token to tell whether the host switched to another item."""
    if metadata is None:
        return ""
    parts = [
        metadata.thread_id,
        metadata.message_id,
        metadata.item_id,
        metadata.received_at,
        metadata.subject,
    ]
    return "|".join(p for p in (_norm(x) for x in parts) if p)
