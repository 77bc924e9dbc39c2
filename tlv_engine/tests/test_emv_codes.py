"""
Tests for EMV reference data, the tag registry and display formatting.
"""

import pytest

from tlv_engine.core.exceptions import ConfigurationException, UnknownTagSpaceException
from tlv_engine.protocols.emv import (
    DEFAULT_REGISTRY,
    EMV_REQUIREMENTS,
    EMV_TAGS,
    FIELD48_REQUIREMENTS,
    FIELD48_TAGS,
    RequestType,
    TagDefinition,
    TagFormat,
    TagRegistry,
    TagSpace,
    TlvParser,
    TransactionRequirements,
    decode,
    format_for_display,
    get_tag_definitions,
    get_tag_format,
    get_tag_name,
)


class TestReferenceData:
    """Tests for the built-in tag tables."""

    def test_table_sizes(self):
        assert len(get_tag_definitions(TagSpace.EMV)) == 33
        assert len(get_tag_definitions("field48")) == 8

    @pytest.mark.parametrize(
        "tags,requirements",
        [(EMV_TAGS, EMV_REQUIREMENTS), (FIELD48_TAGS, FIELD48_REQUIREMENTS)],
    )
    def test_every_required_tag_is_defined(self, tags, requirements):
        for request_type, entry in requirements.items():
            for tag in entry.mandatory_tags + entry.optional_tags:
                assert tag in tags, f"{tag} of {request_type.value} has no definition"

    @pytest.mark.parametrize("requirements", [EMV_REQUIREMENTS, FIELD48_REQUIREMENTS])
    def test_every_request_type_has_requirements(self, requirements):
        assert set(requirements) == set(RequestType)
        assert requirements[RequestType.UNKNOWN].allowed_tags == frozenset()

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            EMV_TAGS["DF01"] = EMV_TAGS["9A"]
        with pytest.raises(TypeError):
            FIELD48_REQUIREMENTS[RequestType.UNKNOWN] = None

    def test_definition_to_dict(self):
        assert EMV_TAGS["9F02"].to_dict() == {
            "tag": "9F02",
            "name": "Amount, Authorized",
            "description": "Transaction Amount taken from transaction data",
            "format": "n",
            "length": 6,
            "mandatory": True,
        }


class TestTransactionRequirements:
    """Tests for requirement construction checks."""

    def test_overlap_is_rejected(self):
        with pytest.raises(ConfigurationException) as exc_info:
            TransactionRequirements(("9A", "9C"), ("9C", "95"), "Broken")

        assert "9C" in exc_info.value.message

    def test_allowed_tags(self):
        requirements = TransactionRequirements(("9A",), ("9C",), "Small")

        assert requirements.allowed_tags == frozenset({"9A", "9C"})


class TestTagRegistry:
    """Tests for registry lookups."""

    def test_missing_tag_space(self):
        with pytest.raises(ConfigurationException):
            TagRegistry(
                definitions={TagSpace.EMV: EMV_TAGS},
                requirements={TagSpace.EMV: EMV_REQUIREMENTS},
            )

    def test_missing_request_type(self):
        partial = {RequestType.FINANCIAL: EMV_REQUIREMENTS[RequestType.FINANCIAL]}

        with pytest.raises(ConfigurationException) as exc_info:
            TagRegistry(
                definitions={TagSpace.EMV: EMV_TAGS, TagSpace.FIELD48: FIELD48_TAGS},
                requirements={TagSpace.EMV: partial, TagSpace.FIELD48: FIELD48_REQUIREMENTS},
            )

        assert "authorization" in exc_info.value.message

    def test_get_definition_is_case_insensitive(self):
        assert DEFAULT_REGISTRY.get_definition("9f26", TagSpace.EMV) is EMV_TAGS["9F26"]
        assert DEFAULT_REGISTRY.is_registered("9F26", "emv")
        assert not DEFAULT_REGISTRY.is_registered("9F26", "field48")

    def test_tag_name_falls_back_to_other_space(self):
        assert get_tag_name("9F26", TagSpace.FIELD48) == "Application Cryptogram"
        assert get_tag_name("030") == "Original RRN"
        assert get_tag_name("DF99") == "Unknown Tag"

    def test_tag_format(self):
        assert get_tag_format("9F1E") is TagFormat.ALPHANUMERIC
        assert get_tag_format("DF99") is None


class TestTagSpace:
    """Tests for tag space resolution."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("emv", TagSpace.EMV),
            ("primary", TagSpace.EMV),
            ("Field55", TagSpace.EMV),
            (None, TagSpace.EMV),
            ("field48", TagSpace.FIELD48),
            ("auxiliary", TagSpace.FIELD48),
            (TagSpace.FIELD48, TagSpace.FIELD48),
        ],
    )
    def test_aliases(self, value, expected):
        assert TagSpace.from_value(value) is expected

    def test_unknown_space(self):
        with pytest.raises(UnknownTagSpaceException) as exc_info:
            TagSpace.from_value("field62")

        assert exc_info.value.error_code == "UNKNOWN_TAG_SPACE"

    def test_concrete_request_types(self):
        assert len(RequestType.concrete()) == 8
        assert RequestType.UNKNOWN not in RequestType.concrete()


class TestDisplayFormatting:
    """Tests for format_for_display."""

    def test_display_shape(self):
        records = decode("9A031909259F1E0431323334").records

        assert format_for_display(records, TagSpace.EMV) == [
            {
                "tag": "9A",
                "name": "Transaction Date",
                "description": "Transaction Date formatted as YYMMDD",
                "length": 3,
                "rawValue": "190925",
                "parsedValue": "190925",
            },
            {
                "tag": "9F1E",
                "name": "Interface Device Serial Number",
                "description": "Unique and permanent serial number assigned to the Interface Device",
                "length": 4,
                "rawValue": "31323334",
                "parsedValue": "1234",
            },
        ]

    def test_signed_amount_is_expanded(self):
        definition = TagDefinition("DF01", "Signed Amount", "", TagFormat.AMOUNT_WITH_SIGN)
        registry = TagRegistry(
            definitions={TagSpace.EMV: {"DF01": definition}, TagSpace.FIELD48: {}},
            requirements={
                TagSpace.EMV: EMV_REQUIREMENTS,
                TagSpace.FIELD48: FIELD48_REQUIREMENTS,
            },
        )
        records = TlvParser(registry=registry).parse("DF0102D150")
        formatted = format_for_display(records, registry=registry)

        assert formatted[0]["name"] == "Signed Amount"
        assert formatted[0]["parsedValue"] == {"sign": "-", "amount": "150"}
