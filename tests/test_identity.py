"""Identity resolution tests.

Covers:
- FNV-1a digest against published test vectors
- canonical keys (thread + message, thread + item)
- fallback key normalization
- item_token
- host-shaped metadata
"""

from conftest import make_metadata

from inbox_cockpit.identity import (
    fallback_identity,
    fnv1a_32,
    item_token,
    normalize_subject,
    resolve_identity,
)
from inbox_cockpit.models import MessageMetadata, Recipient


def _fnv_bytes(data: bytes) -> str:
    h = 0x811C9DC5
    for b in data:
        h ^= b
        h = (h * 0x01000193) & 0xFFFFFFFF
    return format(h, "x")


class TestFnv1a:
    def test_known_vectors(self):
        assert fnv1a_32("") == "811c9dc5"
        assert fnv1a_32("a") == "e40c292c"
        assert fnv1a_32("foobar") == "bf9cf968"

    def test_hex_is_unpadded_lowercase(self):
        digest = fnv1a_32("hello|bob@example.com|")
        assert digest == digest.lower()
        assert not digest.startswith("0") or digest == "0"

    def test_hashes_utf16_code_units_not_utf8_bytes(self):
        # U+00E9 is one code unit (0xE9) but two UTF-8 bytes
        assert fnv1a_32("é") == _fnv_bytes(b"\xe9")
        assert fnv1a_32("é") != _fnv_bytes("é".encode())


class TestResolveIdentity:
    def test_thread_and_message(self):
        assert resolve_identity(make_metadata("T1", "M1")) == "T1::M1"

    def test_different_message_same_thread_differs(self):
        a = resolve_identity(make_metadata("T1", "M1"))
        b = resolve_identity(make_metadata("T1", "M2"))
        assert a == "T1::M1"
        assert b == "T1::M2"
        assert a != b

    def test_thread_and_item_when_no_message(self):
        metadata = MessageMetadata(thread_id="T1", item_id="I9")
        assert resolve_identity(metadata) == "T1::I9"

    def test_ids_are_trimmed(self):
        metadata = MessageMetadata(thread_id=" T1 ", message_id=" M1\n")
        assert resolve_identity(metadata) == "T1::M1"

    def test_fallback_without_recipient(self):
        metadata = MessageMetadata(subject="Hello", sender_email="Bob@Example.com ")
        expected = "nocid::h" + fnv1a_32("hello|bob@example.com|")
        assert resolve_identity(metadata) == expected

    def test_fallback_uses_first_to_address(self):
        metadata = MessageMetadata(
            subject="Hello",
            sender_email="bob@example.com",
            to_list=[Recipient("Carol@Example.com"), Recipient("dave@example.com")],
        )
        expected = "nocid::h" + fnv1a_32("hello|bob@example.com|carol@example.com")
        assert resolve_identity(metadata) == expected

    def test_fallback_thread_only_is_not_enough(self):
        metadata = MessageMetadata(thread_id="T1", subject="Hello")
        assert resolve_identity(metadata).startswith("nocid::h")

    def test_whitespace_and_case_collapse_to_same_key(self):
        a = fallback_identity("  Hello   World ", "BOB@example.com", "")
        b = fallback_identity("hello world", "bob@example.com ", None)
        assert a == b

    def test_none_metadata_is_total(self):
        assert resolve_identity(None) == "nocid::h" + fnv1a_32("||")

    def test_deterministic(self):
        metadata = MessageMetadata(subject="Re: x", sender_email="a@x.com")
        assert resolve_identity(metadata) == resolve_identity(metadata)

    def test_normalize_subject(self):
        assert normalize_subject("  A\tB\n C ") == "a b c"


class TestItemToken:
    def test_joins_present_parts(self):
        metadata = MessageMetadata(thread_id="T1", subject="Hi")
        assert item_token(metadata) == "T1|Hi"

    def test_none(self):
        assert item_token(None) == ""

    def test_changes_with_message(self):
        assert item_token(make_metadata("T1", "M1")) != item_token(make_metadata("T1", "M2"))


class TestFromHost:
    def test_host_shaped_dict(self):
        metadata = MessageMetadata.from_host(
            {
                "conversationId": "T1",
                "internetMessageId": "<m1@example.com>",
                "subject": "Quote",
                "fromEmail": "a@x.com",
                "toRecipients": [{"email": "me@example.com", "name": "Me"}, {"bad": 1}],
            }
        )
        assert metadata.thread_id == "T1"
        assert metadata.message_id == "<m1@example.com>"
        assert metadata.sender_email == "a@x.com"
        assert [r.email for r in metadata.to_list] == ["me@example.com"]
        assert resolve_identity(metadata) == "T1::<m1@example.com>"

    def test_garbage_never_raises(self):
        assert MessageMetadata.from_host(None) == MessageMetadata()
        assert MessageMetadata.from_host({"toList": "nope", "subject": None}).to_list == []
