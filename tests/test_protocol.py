"""
Tests for protocol envelope normalization, validation and secret extraction.
"""

import pytest

from ocmshare.exceptions import MissingArgumentsError
from ocmshare.protocol import (
    ProtocolVariant,
    ShareProtocol,
    detect_variant,
    extract_shared_secret,
    normalize,
    parse_protocol,
    validate,
)

LEGACY = {"name": "webdav", "options": {"sharedSecret": "abc"}}

EXTENDED = {
    "singleProtocolNew": {
        "name": "webdav",
        "options": {"sharedSecret": "abc"},
        "webdav": {"sharedSecret": "def", "permissions": "read", "uri": "/remote.php/dav/x"},
    }
}

MULTI = {
    "multipleProtocols": {
        "name": "multi",
        "webdav": {"uri": "https://remote.example/dav/x", "permissions": ["read"]},
        "webapp": None,
        "datatx": None,
        "options": {"sharedSecret": "ghi"},
    }
}


class TestNormalize:
    """Tests for the protocol v1.0 wrapping rule."""

    def test_top_level_name_is_wrapped_as_legacy(self):
        envelope = normalize(LEGACY)
        assert envelope == {"singleProtocolLegacy": LEGACY}
        assert detect_variant(envelope) == ProtocolVariant.LEGACY_SINGLE

    def test_top_level_name_wins_even_with_webdav_block(self):
        raw = {**LEGACY, "webdav": {"sharedSecret": "abc", "permissions": 1, "uri": "x"}}
        assert detect_variant(normalize(raw)) == ProtocolVariant.LEGACY_SINGLE

    def test_tagged_envelope_passes_through(self):
        assert normalize(EXTENDED) is EXTENDED
        assert normalize(MULTI) is MULTI

    def test_non_mapping_passes_through(self):
        assert normalize("webdav") == "webdav"
        assert normalize(None) is None


class TestValidate:
    """Tests for per-variant required fields."""

    def test_legacy_valid(self):
        assert validate(normalize(LEGACY)) is True

    def test_legacy_requires_webdav_name(self):
        raw = {"name": "ftp", "options": {"sharedSecret": "abc"}}
        assert validate(normalize(raw)) is False

    def test_legacy_requires_shared_secret(self):
        raw = {"name": "webdav", "options": {"permissions": 31}}
        assert validate(normalize(raw)) is False

    def test_legacy_requires_options_mapping(self):
        raw = {"name": "webdav", "options": "sharedSecret=abc"}
        assert validate(normalize(raw)) is False

    def test_extended_valid(self):
        assert validate(EXTENDED) is True

    def test_extended_requires_all_webdav_fields(self):
        body = dict(EXTENDED["singleProtocolNew"])
        body["webdav"] = {"sharedSecret": "def", "permissions": "read"}
        assert validate({"singleProtocolNew": body}) is False

    def test_extended_requires_webdav_name(self):
        body = dict(EXTENDED["singleProtocolNew"], name="multi")
        assert validate({"singleProtocolNew": body}) is False

    def test_multi_valid_with_null_subprotocols(self):
        assert validate(MULTI) is True

    @pytest.mark.parametrize("missing", ["webdav", "webapp", "datatx"])
    def test_multi_rejects_missing_subprotocol_key(self, missing):
        body = dict(MULTI["multipleProtocols"])
        del body[missing]
        assert validate({"multipleProtocols": body}) is False

    def test_multi_rejects_incomplete_subprotocol(self):
        body = dict(MULTI["multipleProtocols"], webapp={"uriTemplate": "https://x/{id}"})
        assert validate({"multipleProtocols": body}) is False

    def test_multi_rejects_other_name(self):
        body = dict(MULTI["multipleProtocols"], name="webdav")
        assert validate({"multipleProtocols": body}) is False

    def test_multi_without_options(self):
        body = {"webdav": None, "webapp": None, "datatx": {"srcUri": "https://x/y", "size": 10}}
        assert validate({"multipleProtocols": body}) is True

    def test_rejects_two_tags(self):
        envelope = {**EXTENDED, **MULTI}
        assert validate(envelope) is False

    def test_rejects_unknown_tag(self):
        assert validate({"singleProtocolFuture": {"name": "webdav"}}) is False

    def test_rejects_extra_top_level_key(self):
        assert validate({**MULTI, "comment": "hello"}) is False

    def test_rejects_non_mapping(self):
        assert validate(None) is False
        assert validate(["webdav"]) is False
        assert validate({"singleProtocolNew": "webdav"}) is False


class TestExtractSharedSecret:
    """Tests for shared secret recovery."""

    def test_legacy_round_trip(self):
        envelope = normalize(LEGACY)
        assert validate(envelope)
        assert extract_shared_secret(envelope) == "abc"

    def test_extended_uses_webdav_secret(self):
        assert extract_shared_secret(EXTENDED) == "def"

    def test_multi_uses_options_secret(self):
        assert extract_shared_secret(MULTI) == "ghi"

    def test_multi_without_options_is_empty(self):
        body = {"name": "multi", "webdav": None, "webapp": None, "datatx": None}
        assert extract_shared_secret({"multipleProtocols": body}) == ""

    def test_never_fails_on_garbage(self):
        assert extract_shared_secret(None) == ""
        assert extract_shared_secret({"unknown": {}}) == ""
        assert extract_shared_secret({"singleProtocolLegacy": "x"}) == ""
        assert extract_shared_secret({"singleProtocolNew": {"webdav": "x"}}) == ""


class TestShareProtocol:
    """Tests for the parsed envelope value."""

    def test_parse_legacy(self):
        protocol = parse_protocol(LEGACY)
        assert protocol.variant == ProtocolVariant.LEGACY_SINGLE
        assert protocol.name == "webdav"
        assert protocol.shared_secret == "abc"

    def test_parse_rejects_invalid(self):
        with pytest.raises(MissingArgumentsError):
            parse_protocol({"name": "webdav", "options": {}})

    def test_legacy_goes_out_untagged(self):
        protocol = ShareProtocol.legacy("abc", permissions=31)
        assert protocol.to_dict() == {
            "name": "webdav",
            "options": {"sharedSecret": "abc", "permissions": 31},
        }

    def test_extended_wire_form_is_tagged(self):
        protocol = ShareProtocol.extended("abc", permissions="read", uri="/dav/x")
        wire = protocol.to_dict()
        assert list(wire) == ["singleProtocolNew"]
        parsed = parse_protocol(wire)
        assert parsed.variant == ProtocolVariant.EXTENDED_SINGLE
        assert parsed.webdav == {"sharedSecret": "abc", "permissions": "read", "uri": "/dav/x"}

    def test_multi_factory(self):
        protocol = ShareProtocol.multi(
            webdav={"uri": "https://x/dav", "permissions": ["read"]},
            options={"sharedSecret": "s"},
        )
        parsed = parse_protocol(protocol.to_dict())
        assert parsed.variant == ProtocolVariant.MULTI
        assert parsed.name == "multi"
        assert parsed.webapp is None
        assert parsed.shared_secret == "s"

    def test_accessors_return_copies(self):
        protocol = ShareProtocol.extended("abc", permissions="read", uri="/dav/x")
        protocol.webdav["sharedSecret"] = "changed"
        protocol.options["sharedSecret"] = "changed"
        assert protocol.shared_secret == "abc"
        assert protocol.options["sharedSecret"] == "abc"

    def test_factory_inputs_are_copied(self):
        webdav = {"uri": "https://x/dav", "permissions": ["read"]}
        protocol = ShareProtocol.multi(webdav=webdav)
        webdav["permissions"].append("write")
        assert protocol.webdav["permissions"] == ["read"]

    def test_compares_by_value_but_is_not_hashable(self):
        assert ShareProtocol.legacy("abc") == ShareProtocol.legacy("abc")
        assert ShareProtocol.legacy("abc") != ShareProtocol.legacy("def")
        with pytest.raises(TypeError, match="unhashable"):
            hash(ShareProtocol.legacy("abc"))

    def test_parsed_body_is_a_copy(self):
        raw = {"name": "webdav", "options": {"sharedSecret": "abc"}}
        protocol = parse_protocol(raw)
        raw["options"]["sharedSecret"] = "changed"
        assert protocol.shared_secret == "abc"
