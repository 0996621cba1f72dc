"""Text and HTML helpers for email bodies and generated content.

Body trimming keeps generation requests small: the "main" scope cuts the
quoted thread and the signature, the "full" scope only the signature.
sanitize_ai_html reduces generator output to a small tag allowlist before
it is shown or inserted into a draft.
"""

from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup, Tag

from .models import MessageMetadata

MAIN_BODY_MAX_CHARS = 4500
FULL_BODY_MAX_CHARS = 9000
# Forwarded emails often start with a mini header ("De:", "Sent:");
# markers before this index are part of the message, not a quote boundary.
MIN_QUOTE_INDEX = 220
SIGNATURE_DELIMITER = "\n-- \n"

_QUOTE_MARKERS = [
    re.compile(r"^From:\s.+$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^Sent:\s.+$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^De:\s.+$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^Enviado:\s.+$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^On\s.+wrote:\s*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^Em\s.+escreveu:\s*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^-----Original Message-----$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^-----Mensagem original-----$", re.IGNORECASE | re.MULTILINE),
]

ALLOWED_TAGS = frozenset({"p", "br", "ul", "ol", "li", "strong", "em", "a", "h3", "h4", "code"})
_SAFE_HREF_PREFIXES = ("http://", "https://", "mailto:")


def _cut_signature(s: str) -> str:
    pos = s.find(SIGNATURE_DELIMITER)
    return s[:pos] if pos > 0 else s


def trim_email_body(raw: str | None) -> str:
    """Main message only: no quoted thread, no signature, capped."""
    if not raw:
        return ""
    s = str(raw)
    cut_at = len(s)
    for marker in _QUOTE_MARKERS:
        # first match of each marker, like a non-global search
        m = marker.search(s)
        if m is None or m.start() < MIN_QUOTE_INDEX:
            continue
        cut_at = min(cut_at, m.start())
    s = _cut_signature(s[:cut_at])
    return s[:MAIN_BODY_MAX_CHARS].strip()


def trim_email_body_full(raw: str | None) -> str:
    """Whole body including quotes; only the signature is cut."""
    if not raw:
        return ""
    s = _cut_signature(str(raw))
    return s[:FULL_BODY_MAX_CHARS].strip()


def escape_html(text: str | None) -> str:
    return html.escape(str(text or ""), quote=True)


def strip_html(markup: str | None) -> str:
    """Collapse markup to a single line of plain text."""
    s = str(markup or "")
    s = re.sub(r"<style[\s\S]*?</style>", "", s, flags=re.IGNORECASE)
    s = re.sub(r"<script[\s\S]*?</script>", "", s, flags=re.IGNORECASE)
    s = re.sub(r"<[^>]+>", " ", s)
    return re.sub(r"\s+", " ", html.unescape(s)).strip()


def sanitize_ai_html(markup: str | None) -> str:
    """Keep only ALLOWED_TAGS; links keep a safe href and nothing else."""
    soup = BeautifulSoup(markup or "", "html.parser")
    _sanitize_children(soup)
    return str(soup)


def _sanitize_children(node: Tag) -> None:
    for child in list(node.children):
        if not isinstance(child, Tag):
            continue
        if child.name not in ALLOWED_TAGS:
            child.replace_with(child.get_text())
            continue
        href = child.get("href") if child.name == "a" else None
        child.attrs = {}
        if isinstance(href, str) and href.startswith(_SAFE_HREF_PREFIXES):
            child.attrs = {"href": href, "target": "_blank", "rel": "noreferrer"}
        _sanitize_children(child)


def make_reply_subject(subject: str | None) -> str:
    s = str(subject or "").strip()
    if not s:
        return ""
    if re.match(r"^\s*re:\s*", s, re.IGNORECASE):
        return s
    return f"RE: {s}"


def make_forward_subject(subject: str | None) -> str:
    s = str(subject or "").strip()
    if not s:
        return ""
    if re.match(r"^\s*(fw|fwd):\s*", s, re.IGNORECASE):
        return s
    return f"FW: {s}"


def apply_template_vars(body: str | None, metadata: MessageMetadata) -> str:
    """Fill {{nome}} (sender name) and {{assunto}} (subject) in a snippet."""
    name = metadata.sender_name.strip()
    subject = metadata.subject.strip()
    s = re.sub(r"\{\{\s*nome\s*\}\}", lambda _: name, str(body or ""), flags=re.IGNORECASE)
    return re.sub(r"\{\{\s*assunto\s*\}\}", lambda _: subject, s, flags=re.IGNORECASE)


def safe_attachment_name(subject: str | None, max_length: int = 60) -> str:
    """File name for attaching the original item as .msg."""
    base = str(subject or "").strip() or "email"
    base = re.sub(r'[\\/:*?"<>|]', "-", base[:max_length])
    return f"{base}.msg"
