"""
EMV TLV Protocol Implementation

BER-TLV decoding and tag requirement validation for:
- EMV Field 55 (ICC system related data)
- ISO 8583 Field 48 (additional data)

Tags are checked against per-request-type mandatory/optional lists; the
request type may be inferred from the processing code (Field 3).
"""

from tlv_engine.protocols.emv.emv_codes import (
    TagSpace,
    TagFormat,
    RequestType,
    TagDefinition,
    TransactionRequirements,
    TagRegistry,
    DEFAULT_REGISTRY,
    EMV_TAGS,
    FIELD48_TAGS,
    EMV_REQUIREMENTS,
    FIELD48_REQUIREMENTS,
    get_tag_definitions,
    get_tag_name,
    get_tag_format,
)
from tlv_engine.protocols.emv.emv_tlv import (
    TlvParser,
    TlvRecord,
    SignedAmount,
    DecodeResult,
    parse_tlv,
    decode,
    tlv_to_dict,
    interpret_value,
)
from tlv_engine.protocols.emv.emv_validator import (
    TagValidator,
    ValidationVerdict,
    RequirementEntry,
    RequirementsView,
    infer_request_type,
    resolve_request_type,
    validate_tags,
    get_requirements,
    decode_and_validate,
)
from tlv_engine.protocols.emv.emv_formatter import format_for_display

__all__ = [
    # Codes and reference data
    "TagSpace",
    "TagFormat",
    "RequestType",
    "TagDefinition",
    "TransactionRequirements",
    "TagRegistry",
    "DEFAULT_REGISTRY",
    "EMV_TAGS",
    "FIELD48_TAGS",
    "EMV_REQUIREMENTS",
    "FIELD48_REQUIREMENTS",
    "get_tag_definitions",
    "get_tag_name",
    "get_tag_format",
    # TLV
    "TlvParser",
    "TlvRecord",
    "SignedAmount",
    "DecodeResult",
    "parse_tlv",
    "decode",
    "tlv_to_dict",
    "interpret_value",
    # Validator
    "TagValidator",
    "ValidationVerdict",
    "RequirementEntry",
    "RequirementsView",
    "infer_request_type",
    "resolve_request_type",
    "validate_tags",
    "get_requirements",
    "decode_and_validate",
    # Display
    "format_for_display",
]
