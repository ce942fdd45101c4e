"""
Tests for the share token codec
"""
import base64
import json
import re

import pytest

from innet.components.contracts import (DEFAULT_GROUP_COLOR, DEFAULT_GROUP_NAME,
                                        DEFAULT_OWNER_NAME, SharePayload)
from innet.components.share_codec import (SHARE_PREFIX, SHARE_VERSION,
                                          decode_share_token,
                                          encode_share_token,
                                          parse_share_token, sanitize_avatar,
                                          sanitize_payload)
from innet.core.errors import (DecodeError, FormatError, ShareDecodeError,
                               VersionError)
from innet.utils.datetime_utils import now_ms

from conftest import FIXED_NOW


def _token_for(obj) -> str:
    raw = json.dumps(obj, ensure_ascii=False).encode("utf-8")
    return SHARE_PREFIX + base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def test_encode_then_decode_preserves_payload(sample_payload):
    """Decoding an encoded payload yields the sanitized original"""
    encoded = encode_share_token(sample_payload)

    assert encoded.token.startswith(SHARE_PREFIX)
    assert encoded.length == len(encoded.token)
    assert not encoded.oversize
    assert decode_share_token(encoded.token) == sanitize_payload(sample_payload)


def test_token_body_is_unpadded_base64url(sample_payload):
    token = encode_share_token(sample_payload).token
    body = token[len(SHARE_PREFIX):]
    assert re.fullmatch(r"[A-Za-z0-9_\-]+", body)


def test_encoding_is_deterministic(sample_payload):
    assert encode_share_token(sample_payload).token == encode_share_token(sample_payload).token


def test_cyrillic_text_survives(sample_payload):
    payload = decode_share_token(encode_share_token(sample_payload).token)
    assert payload.owner.name == "Анна"
    assert payload.groups[0].name == "Работа"
    assert [f.text for f in payload.groups[0].facts] == ["Дизайнер", "Любит кофе"]


def test_decode_accepts_padding_and_whitespace(sample_payload):
    token = encode_share_token(sample_payload).token
    padded = token + "=" * (-len(token[len(SHARE_PREFIX):]) % 4)
    assert decode_share_token(f"  {padded}\n").owner.id == "owner-anna"


def test_oversize_token_is_flagged_not_rejected(sample_payload):
    """Exceeding the soft limit only flags the result"""
    encoded = encode_share_token(sample_payload, soft_limit=50)

    assert encoded.oversize
    assert encoded.soft_limit == 50
    assert decode_share_token(encoded.token).owner.id == "owner-anna"


class TestDecodeErrors:
    """Each failure mode surfaces its own error kind"""

    @pytest.mark.parametrize("token", ["", "hello", "innet:abc", "INNET-SHARE:abc"])
    def test_missing_prefix_is_format_error(self, token):
        with pytest.raises(FormatError):
            decode_share_token(token)

    def test_non_string_is_format_error(self):
        with pytest.raises(FormatError):
            decode_share_token(None)

    @pytest.mark.parametrize("body", ["@@@", "a", "bm90IGpzb24"])
    def test_bad_body_is_decode_error(self, body):
        with pytest.raises(DecodeError):
            decode_share_token(SHARE_PREFIX + body)

    def test_json_array_is_decode_error(self):
        with pytest.raises(DecodeError):
            decode_share_token(_token_for([1, 2, 3]))

    @pytest.mark.parametrize("version", [2, 0, "1", True, None, 1.5])
    def test_unsupported_version(self, version, sample_payload):
        sample_payload["v"] = version
        with pytest.raises(VersionError):
            decode_share_token(_token_for(sample_payload))

    def test_missing_version(self, sample_payload):
        del sample_payload["v"]
        with pytest.raises(VersionError):
            decode_share_token(_token_for(sample_payload))

    def test_errors_share_a_base_class(self):
        assert issubclass(FormatError, ShareDecodeError)
        assert issubclass(DecodeError, ShareDecodeError)
        assert issubclass(VersionError, ShareDecodeError)


class TestParseResult:
    """parse_share_token returns a tagged result instead of raising"""

    def test_ok(self, sample_payload):
        result = parse_share_token(encode_share_token(sample_payload).token)
        assert result.ok
        assert result.kind == "ok"
        assert isinstance(result.payload, SharePayload)
        assert result.error is None

    @pytest.mark.parametrize(
        "token,kind",
        [
            ("garbage", "format"),
            (SHARE_PREFIX + "@@@", "decode"),
        ],
    )
    def test_failures(self, token, kind):
        result = parse_share_token(token)
        assert not result.ok
        assert result.kind == kind
        assert result.payload is None
        assert result.error.message

    def test_version_failure(self, sample_payload):
        sample_payload["v"] = SHARE_VERSION + 1
        result = parse_share_token(_token_for(sample_payload))
        assert result.kind == "version"


class TestSanitization:
    """Malformed fields are corrected, never raised"""

    def test_hostile_payload_is_decoded_into_legal_shape(self):
        hostile = {
            "v": 1,
            "owner": {"id": 42, "name": "   ", "avatar": "data:image/png;base64,AAAA", "phone": ""},
            "groups": [
                "not a group",
                {"id": None, "name": "", "color": None, "facts": [
                    {"id": "keep", "text": "  Факт  "},
                    {"id": "drop", "text": "   "},
                    {"text": 7},
                    "not a fact",
                ]},
            ],
            "generatedAt": "yesterday",
        }
        payload = sanitize_payload(hostile, now=FIXED_NOW)

        assert payload.owner.id and payload.owner.id != "42"
        assert payload.owner.name == DEFAULT_OWNER_NAME
        assert payload.owner.avatar is None
        assert payload.owner.phone is None
        assert len(payload.groups) == 1
        group = payload.groups[0]
        assert group.id
        assert group.name == DEFAULT_GROUP_NAME
        assert group.color == DEFAULT_GROUP_COLOR
        assert [(f.id, f.text) for f in group.facts] == [("keep", "Факт")]
        assert payload.generated_at == now_ms(FIXED_NOW)

    def test_non_mapping_input(self):
        payload = sanitize_payload("nonsense", now=FIXED_NOW)
        assert payload.v == SHARE_VERSION
        assert payload.groups == []
        assert payload.owner.name == DEFAULT_OWNER_NAME

    def test_text_caps(self, sample_payload):
        sample_payload["owner"]["name"] = "Я" * 100
        sample_payload["owner"]["telegram"] = "@" + "t" * 100
        sample_payload["groups"][0]["name"] = "G" * 80
        sample_payload["groups"][0]["facts"][0]["text"] = "x" * 5000

        payload = sanitize_payload(sample_payload)

        assert len(payload.owner.name) == 64
        assert len(payload.owner.telegram) == 64
        assert len(payload.groups[0].name) == 64
        assert len(payload.groups[0].facts[0].text) == 4000

    def test_configured_fact_limit(self, sample_payload):
        payload = sanitize_payload(sample_payload, fact_text_limit=4)
        assert payload.groups[0].facts[0].text == "Диза"

    def test_ids_are_preserved(self, sample_payload):
        payload = sanitize_payload(sample_payload)
        assert payload.owner.id == "owner-anna"
        assert [g.id for g in payload.groups] == ["g-work", "g-hobby"]
        assert [f.id for f in payload.groups[0].facts] == ["f-1", "f-2"]

    def test_repeated_group_id_folds_into_first_group(self, sample_payload):
        sample_payload["groups"].append({
            "id": "g-work", "name": "Другая", "color": "#111111",
            "facts": [{"id": "f-1", "text": "Новый факт"}, {"id": "f-5", "text": "Дизайнер"}],
        })

        payload = sanitize_payload(sample_payload)

        assert [g.id for g in payload.groups] == ["g-work", "g-hobby"]
        work = payload.groups[0]
        assert (work.name, work.color) == ("Работа", "#0EA5E9")
        assert [f.text for f in work.facts] == ["Дизайнер", "Любит кофе", "Новый факт"]
        assert [f.id for f in work.facts][:2] == ["f-1", "f-2"]
        assert len({f.id for f in work.facts}) == 3
        assert sanitize_payload(payload) == payload

    def test_repeated_fact_id_in_group_is_regenerated(self, sample_payload):
        sample_payload["groups"][0]["facts"][1]["id"] = "f-1"

        facts = sanitize_payload(sample_payload).groups[0].facts

        assert facts[0].id == "f-1"
        assert facts[1].id != "f-1"
        assert [f.text for f in facts] == ["Дизайнер", "Любит кофе"]

    def test_idempotent(self, sample_payload):
        sample_payload["owner"]["name"] = "  " + "Н" * 63 + "   x"
        del sample_payload["groups"][1]["id"]
        once = sanitize_payload(sample_payload)
        assert sanitize_payload(once) == once
        assert sanitize_payload(once.to_wire()) == once

    def test_absent_optionals_are_omitted_on_the_wire(self, sample_payload):
        wire = sanitize_payload(sample_payload).to_wire()
        assert "instagram" not in wire["owner"]
        assert wire["generatedAt"] == 1740830400000
        assert list(wire) == ["v", "owner", "groups", "generatedAt"]

    @pytest.mark.parametrize(
        "avatar,expected",
        [
            ("https://cdn.innet.app/a.png", "https://cdn.innet.app/a.png"),
            ("  http://x.io/a.jpg ", "http://x.io/a.jpg"),
            ("data:image/png;base64,AAAA", None),
            ("blob:https://innet.app/1234", None),
            ("ftp://x.io/a.png", None),
            ("/relative/a.png", None),
            ("https://x.io/" + "a" * 300, None),
            (12, None),
            ("", None),
        ],
    )
    def test_avatar(self, avatar, expected):
        assert sanitize_avatar(avatar) == expected

    def test_generated_at_kept_when_numeric(self, sample_payload):
        sample_payload["generatedAt"] = 1700000000000.0
        assert sanitize_payload(sample_payload).generated_at == 1700000000000

    def test_boolean_generated_at_is_replaced(self, sample_payload):
        sample_payload["generatedAt"] = True
        assert sanitize_payload(sample_payload, now=FIXED_NOW).generated_at == now_ms(FIXED_NOW)
