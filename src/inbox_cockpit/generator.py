"""Content generator collaborator.

The cockpit asks a generator to summarize, reply to, rewrite or list tasks
for an email. ``HttpGenerator`` talks to the backend endpoint; the
``MockGenerator`` answers locally (simulator mode and tests).

Request body sent to ``POST <base_url>/api/ai/generate``::

    {"action": "reply", "mode": "fast", "locale": "pt-PT", "tone": "neutro",
     "email": {"subject": ..., "from": ..., "to": [...], "cc": [...],
               "bcc": [...], "bodyScope": "main", "bodyText": ...},
     "inputText": "..."}

The backend answers ``{"ok": true, "html": ..., "text": ...}`` or
``{"ok": false, "error": ...}``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from .conventions import GENERATE_PATH
from .schema import CockpitConfig

logger = logging.getLogger(__name__)

_TIMEOUT = 60.0


class GenerationError(Exception):
    """The generator could not produce content."""


@dataclass
class EmailContext:
    subject: str = ""
    sender: str = ""
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    body_scope: str = "main"
    body_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "from": self.sender,
            "to": list(self.to),
            "cc": list(self.cc),
            "bcc": list(self.bcc),
            "bodyScope": self.body_scope,
            "bodyText": self.body_text,
        }


@dataclass
class GenerationRequest:
    action: str
    mode: str = "fast"
    locale: str = "pt-PT"
    tone: str = "neutro"
    email: EmailContext | None = None
    input_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action,
            "mode": self.mode,
            "locale": self.locale,
            "tone": self.tone,
        }
        if self.email is not None:
            data["email"] = self.email.to_dict()
        if self.input_text:
            data["inputText"] = self.input_text
        return data


@dataclass
class GenerationResult:
    html: str = ""
    text: str = ""


@runtime_checkable
class Generator(Protocol):
    """Anything that turns a GenerationRequest into content."""

    async def generate(self, request: GenerationRequest) -> GenerationResult: ...


Responder = Callable[[GenerationRequest], GenerationResult | Awaitable[GenerationResult]]


class MockGenerator:
    """Local generator: canned result or a responder callable.

    Every request is recorded in ``requests``. Set ``fail_with`` to make the
    next calls raise GenerationError with that message.
    """

    def __init__(
        self,
        result: GenerationResult | None = None,
        *,
        responder: Responder | None = None,
        fail_with: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self.result = result
        self.responder = responder
        self.fail_with = fail_with
        self.delay = delay
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise GenerationError(self.fail_with)
        if self.responder is not None:
            result = self.responder(request)
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result
            return result
        if self.result is not None:
            return self.result
        subject = request.email.subject if request.email else ""
        text = f"[{request.action}] {subject}".strip()
        return GenerationResult(html=f"<p>{text}</p>", text=text)


class HttpGenerator:
    """Generator backed by the cockpit backend over HTTP."""

    def __init__(self, base_url: str, *, timeout: float = _TIMEOUT) -> None:
        self._url = base_url.rstrip("/") + GENERATE_PATH
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=request.to_dict(),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise GenerationError(f"Timeout calling {self._url}") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"HTTP error: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning("Generator returned %d for %s", resp.status_code, request.action)
            raise GenerationError(f"HTTP {resp.status_code}: {resp.text[:400]}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationError(f"Invalid JSON: {resp.text[:400]}") from exc

        if not isinstance(data, dict):
            raise GenerationError("Invalid response shape")
        if not data.get("ok"):
            raise GenerationError(str(data.get("error") or "Generation failed"))
        return GenerationResult(
            html=str(data.get("html") or ""),
            text=str(data.get("text") or ""),
        )


def build_generator(config: CockpitConfig) -> Generator:
    """Generator selected by config: mock in simulator mode, HTTP otherwise."""
    if config.simulator or config.generator.mode == "mock":
        return MockGenerator()
    return HttpGenerator(config.generator.base_url, timeout=config.generator.timeout_seconds)
