"""Draft composition: content, signature and the marked AI block.

Inserted content is wrapped between two HTML comments so the next
insertion into the same draft replaces it instead of stacking a copy:

    <!--ICC_AI_START--><div data-icc-ai="1">...</div><!--ICC_AI_END-->
"""

from __future__ import annotations

from .conventions import AI_BLOCK_END, AI_BLOCK_START
from .schema import SignatureConfig
from .text import escape_html

__all__ = [
    "SignatureConfig",
    "build_content_html",
    "build_final_html",
    "build_signature_html",
    "replace_marked_block",
    "wrap_with_marker",
]


def build_signature_html(signature: SignatureConfig | None) -> str:
    if signature is None or signature.mode == "off":
        return ""

    if signature.mode == "html":
        markup = signature.html.strip()
        return f'<div class="icc-sig">{markup}</div>' if markup else ""

    if signature.mode == "image":
        src = signature.image_data_url.strip() or signature.image_url.strip()
        if not src:
            return ""
        safe_src = src if src.startswith("data:") else escape_html(src)
        return (
            f'<div class="icc-sig"><br/><img src="{safe_src}" alt="" '
            f'style="max-width:{signature.image_max_width}px;height:auto;display:block;"/></div>'
        )

    text = signature.text.strip()
    if not text:
        return ""
    return f'<div class="icc-sig" style="white-space:pre-wrap"><br/>{escape_html(text)}</div>'


def build_content_html(slot_html: str, slot_text: str) -> str:
    """HTML for a result slot; plain text falls back to an escaped <pre>."""
    if slot_html:
        return slot_html
    if slot_text:
        return f'<pre style="white-space:pre-wrap;font-family:inherit">{escape_html(slot_text)}</pre>'
    return ""


def build_final_html(slot_html: str, slot_text: str, signature: SignatureConfig | None = None) -> str:
    """Content plus signature, or "" when the slot is empty."""
    content = build_content_html(slot_html, slot_text)
    if not content:
        return ""
    return content + build_signature_html(signature)


def wrap_with_marker(html: str) -> str:
    return f'{AI_BLOCK_START}<div data-icc-ai="1">{html}</div>{AI_BLOCK_END}'


def has_marked_block(current: str) -> bool:
    return AI_BLOCK_START in current and AI_BLOCK_END in current


def replace_marked_block(current: str, block: str) -> str | None:
    """Swap the marked block in *current* for *block*; None without markers."""
    if not has_marked_block(current):
        return None
    before = current.split(AI_BLOCK_START, 1)[0]
    after = current.split(AI_BLOCK_END, 1)[1]
    return before + block + after
