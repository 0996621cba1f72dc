"""Insertion fallback chain tests against MemoryHost."""

from __future__ import annotations

import pytest

from inbox_cockpit.composer import wrap_with_marker
from inbox_cockpit.conventions import AI_BLOCK_START
from inbox_cockpit.host import (
    ALL_CAPABILITIES,
    FormRequest,
    HostCapability,
    HostResult,
    ItemAttachment,
    MemoryHost,
)
from inbox_cockpit.insertion import (
    NOTICE_FORWARD_AS_NEW,
    NOTICE_FORWARD_NO_RECIPIENTS,
    NOTICE_NO_ATTACHMENT,
    DraftInserter,
)
from inbox_cockpit.recipients import GroupedRecipients


def _host(*without: HostCapability, **kwargs) -> MemoryHost:
    return MemoryHost(capabilities=ALL_CAPABILITIES - set(without), **kwargs)


class RaisingHost(MemoryHost):
    async def insert_at_cursor(self, html: str) -> HostResult[None]:
        raise RuntimeError("host crashed")


class TestInsertIntoDraft:
    @pytest.mark.asyncio()
    async def test_first_insert_goes_to_cursor_as_marked_block(self):
        host = _host(draft_html="<p>my sig</p>")
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert outcome.ok
        assert outcome.method == "cursor"
        assert host.draft_html == wrap_with_marker("<p>A</p>") + "<p>my sig</p>"

    @pytest.mark.asyncio()
    async def test_second_insert_replaces_without_duplicating(self):
        host = _host(draft_html="<p>my sig</p>")
        inserter = DraftInserter(host)
        await inserter.insert_into_current_draft("<p>A</p>")
        outcome = await inserter.insert_into_current_draft("<p>B</p>")
        assert outcome.method == "replaced"
        assert host.draft_html == wrap_with_marker("<p>B</p>") + "<p>my sig</p>"
        assert host.draft_html.count(AI_BLOCK_START) == 1

    @pytest.mark.asyncio()
    async def test_falls_back_to_prepend(self):
        host = _host(HostCapability.INSERT_AT_CURSOR)
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert outcome.method == "prepend"

    @pytest.mark.asyncio()
    async def test_failed_step_falls_through(self):
        host = _host()
        host.fail("insert_at_cursor", "prepend_body")
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert outcome.method == "append"
        assert host.draft_html.endswith(wrap_with_marker("<p>A</p>"))

    @pytest.mark.asyncio()
    async def test_destructive_replace_is_last(self):
        host = _host(
            HostCapability.INSERT_AT_CURSOR,
            HostCapability.PREPEND,
            HostCapability.APPEND,
            draft_html="old",
        )
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert outcome.method == "overwrite"
        assert host.draft_html == wrap_with_marker("<p>A</p>")

    @pytest.mark.asyncio()
    async def test_no_capability_is_an_error_not_an_exception(self):
        host = MemoryHost(capabilities=set())
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert not outcome.ok
        assert outcome.error

    @pytest.mark.asyncio()
    async def test_host_exception_is_contained(self):
        host = RaisingHost()
        outcome = await DraftInserter(host).insert_into_current_draft("<p>A</p>")
        assert outcome.ok
        assert outcome.method == "prepend"

    @pytest.mark.asyncio()
    async def test_nothing_to_insert(self):
        outcome = await DraftInserter(_host()).insert_into_current_draft("")
        assert not outcome.ok


class TestOpenReply:
    @pytest.mark.asyncio()
    async def test_reply_all_preset_uses_reply_all_form(self):
        host = _host()
        outcome = await DraftInserter(host).open_reply("<p>A</p>", "replyAll")
        assert outcome.method == "reply_all"
        kind, form = host.opened_forms[0]
        assert kind == "reply_all"
        assert isinstance(form, FormRequest)

    @pytest.mark.asyncio()
    async def test_reply_all_missing_falls_back_to_reply(self):
        host = _host(HostCapability.REPLY_ALL_FORM)
        outcome = await DraftInserter(host).open_reply("<p>A</p>", "replyAll")
        assert outcome.method == "reply"

    @pytest.mark.asyncio()
    async def test_string_form_when_attachment_rejected(self):
        host = _host(reject_structured_forms=True)
        attachment = ItemAttachment("item-1", "Budget.msg")
        outcome = await DraftInserter(host).open_reply("<p>A</p>", "reply", attachment)
        assert outcome.ok
        assert outcome.notice == NOTICE_NO_ATTACHMENT
        assert host.opened_forms == [("reply", "<p>A</p>")]

    @pytest.mark.asyncio()
    async def test_no_reply_form(self):
        host = _host(HostCapability.REPLY_FORM, HostCapability.REPLY_ALL_FORM)
        outcome = await DraftInserter(host).open_reply("<p>A</p>")
        assert not outcome.ok


class TestOpenNewMessage:
    @pytest.mark.asyncio()
    async def test_requires_a_recipient(self):
        host = _host()
        outcome = await DraftInserter(host).open_new_message("<p>A</p>", GroupedRecipients())
        assert not outcome.ok
        assert host.opened_forms == []

    @pytest.mark.asyncio()
    async def test_structured_form_with_recipients_and_subject(self):
        host = _host()
        recipients = GroupedRecipients(to=["a@example.com"], bcc=["b@example.com"])
        outcome = await DraftInserter(host).open_new_message("<p>A</p>", recipients, "Budget")
        assert outcome.ok
        _, form = host.opened_forms[0]
        assert form.to == ["a@example.com"]
        assert form.bcc == ["b@example.com"]
        assert form.subject == "RE: Budget"

    @pytest.mark.asyncio()
    async def test_drops_attachment_when_rejected(self):
        host = _host(reject_attachments=True)
        recipients = GroupedRecipients(to=["a@example.com"])
        attachment = ItemAttachment("item-1", "Budget.msg")
        outcome = await DraftInserter(host).open_new_message(
            "<p>A</p>", recipients, "Budget", attachment
        )
        assert outcome.notice == NOTICE_NO_ATTACHMENT
        _, form = host.opened_forms[0]
        assert form.attachments == []
        assert form.to == ["a@example.com"]


class TestOpenForward:
    @pytest.mark.asyncio()
    async def test_structured_forward(self):
        host = _host()
        recipients = GroupedRecipients(to=["a@example.com"], cc=["c@example.com"])
        outcome = await DraftInserter(host).open_forward("<p>A</p>", recipients, "Budget")
        assert outcome.method == "forward"
        _, form = host.opened_forms[0]
        assert form.to == ["a@example.com"]
        assert form.cc == ["c@example.com"]

    @pytest.mark.asyncio()
    async def test_string_forward_warns_about_recipients(self):
        host = _host(reject_structured_forms=True)
        recipients = GroupedRecipients(to=["a@example.com"])
        outcome = await DraftInserter(host).open_forward("<p>A</p>", recipients)
        assert outcome.notice == NOTICE_FORWARD_NO_RECIPIENTS

    @pytest.mark.asyncio()
    async def test_new_fw_message_when_no_forward_form(self):
        host = _host(HostCapability.FORWARD_FORM)
        recipients = GroupedRecipients(to=["a@example.com"])
        outcome = await DraftInserter(host).open_forward(
            "<p>A</p>", recipients, "Budget", "original <body>"
        )
        assert outcome.method == "forward_as_new"
        assert outcome.notice == NOTICE_FORWARD_AS_NEW
        kind, form = host.opened_forms[0]
        assert kind == "new_message"
        assert form.subject == "FW: Budget"
        assert form.html_body.startswith("<p>A</p>")
        assert "original &lt;body&gt;" in form.html_body

    @pytest.mark.asyncio()
    async def test_nothing_available(self):
        host = _host(HostCapability.FORWARD_FORM, HostCapability.NEW_MESSAGE_FORM)
        outcome = await DraftInserter(host).open_forward("<p>A</p>", GroupedRecipients())
        assert not outcome.ok
