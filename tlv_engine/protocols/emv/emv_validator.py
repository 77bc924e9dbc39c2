"""
EMV Tag Validator

Validates decoded tag sets including:
- Mandatory tags per request type
- Unknown (unregistered) tags
- Registered tags not expected for the request type
- Request type inference from the ISO 8583 processing code
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from prometheus_client import Counter

from tlv_engine.protocols.emv.emv_codes import (
    DEFAULT_REGISTRY,
    RequestType,
    TagDefinition,
    TagRegistry,
    TagSpace,
)
from tlv_engine.protocols.emv.emv_tlv import DecodeResult, TlvParser, TlvRecord

logger = logging.getLogger(__name__)

TLV_VALIDATIONS = Counter(
    "tlv_validations_total",
    "Total tag set validations",
    ["tag_space", "request_type", "result"],
)

# Leading two digits of Field 3 -> request type
PROCESSING_CODE_REQUEST_TYPES: Dict[str, RequestType] = {
    "31": RequestType.AUTHORIZATION,  # Balance inquiry
    "37": RequestType.AUTHORIZATION,  # Check card
    "00": RequestType.FINANCIAL,  # Purchase
    "01": RequestType.FINANCIAL,  # Cash advance
    "09": RequestType.FINANCIAL,  # Purchase with cashback
    "20": RequestType.FINANCIAL,  # Return/Refund
    "21": RequestType.FINANCIAL,  # Cash deposit
    "50": RequestType.FINANCIAL,  # Utility payment
    "17": RequestType.FINANCIAL,  # Loyalty purchase
    "79": RequestType.PIN_CHANGE,
    "90": RequestType.NETWORK_MANAGEMENT,  # Merchant log-on
    "92": RequestType.NETWORK_MANAGEMENT,  # Merchant log-off
    "99": RequestType.NETWORK_MANAGEMENT,
    "93": RequestType.FINANCIAL,  # Pre-authorization
    "94": RequestType.FINANCIAL,  # Pre-authorization completion
}


@dataclass(frozen=True)
class ValidationVerdict:
    """Result of checking a tag set against one request type."""

    is_valid: bool
    request_type: RequestType
    tag_space: TagSpace = TagSpace.EMV
    missing_mandatory_tags: Tuple[TagDefinition, ...] = ()
    invalid_tags: Tuple[str, ...] = ()
    extra_tags: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def missing_tag_ids(self) -> List[str]:
        return [definition.tag for definition in self.missing_mandatory_tags]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, leaving out empty collections."""
        result: Dict[str, Any] = {
            "is_valid": self.is_valid,
            "request_type": self.request_type.value,
        }
        if self.errors:
            result["errors"] = list(self.errors)
        if self.missing_mandatory_tags:
            result["missing_mandatory_tags"] = [
                {
                    "tag": definition.tag,
                    "name": definition.name,
                    "description": definition.description,
                    "format": definition.format.value,
                    "length": definition.length,
                }
                for definition in self.missing_mandatory_tags
            ]
        if self.invalid_tags:
            result["invalid_tags"] = list(self.invalid_tags)
        if self.extra_tags:
            result["extra_tags"] = list(self.extra_tags)
        return result


@dataclass(frozen=True)
class RequirementEntry:
    """A tag definition tagged with whether the request type requires it."""

    definition: TagDefinition
    required: bool

    def to_dict(self) -> Dict[str, Any]:
        result = self.definition.to_dict()
        result["required"] = self.required
        return result


@dataclass(frozen=True)
class RequirementsView:
    """Tag requirements of a request type, resolved to definitions."""

    request_type: RequestType
    description: str
    mandatory_tags: Tuple[RequirementEntry, ...] = field(default_factory=tuple)
    optional_tags: Tuple[RequirementEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestType": self.request_type.value,
            "description": self.description,
            "mandatoryTags": [entry.to_dict() for entry in self.mandatory_tags],
            "optionalTags": [entry.to_dict() for entry in self.optional_tags],
        }


def _ordered_unique(tags: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for tag in tags:
        if tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


class TagValidator:
    """
    Validator for decoded tag sets.

    A verdict is invalid when a mandatory tag is missing or an unregistered
    tag is present. Registered tags outside the request type's lists are
    reported as extra tags without affecting validity.
    """

    def __init__(self, registry: Optional[TagRegistry] = None):
        """
        Initialize the validator.

        Args:
            registry: Reference data lookup, defaults to the built-in tables
        """
        self.registry = registry or DEFAULT_REGISTRY

    def validate(
        self,
        tags: Iterable[Union[TlvRecord, str]],
        request_type: Union[RequestType, str],
        tag_space: Union[TagSpace, str] = TagSpace.EMV,
    ) -> ValidationVerdict:
        """
        Validate a tag set.

        Args:
            tags: Decoded records or plain tag identifiers
            request_type: Transaction category to check against
            tag_space: Tag dictionary of the tags

        Returns:
            ValidationVerdict, never raises for a valid request type
        """
        request_type = RequestType.from_value(request_type)
        space = TagSpace.from_value(tag_space)
        if request_type is RequestType.UNKNOWN:
            # No classification, no rules to enforce
            TLV_VALIDATIONS.labels(
                tag_space=space.value, request_type=request_type.value, result="skipped"
            ).inc()
            return ValidationVerdict(is_valid=True, request_type=request_type, tag_space=space)

        requirements = self.registry.requirements(request_type, space)
        definitions = self.registry.definitions(space)

        present = _ordered_unique(
            (tag.tag if isinstance(tag, TlvRecord) else str(tag)).upper() for tag in tags
        )
        present_set = set(present)
        allowed = requirements.allowed_tags

        missing = tuple(
            definitions[tag]
            for tag in requirements.mandatory_tags
            if tag not in present_set and tag in definitions
        )
        invalid = tuple(
            tag for tag in present if tag not in allowed and tag not in definitions
        )
        extra = tuple(tag for tag in present if tag in definitions and tag not in allowed)

        errors = []
        if missing:
            errors.append(
                "Missing mandatory tags: "
                + ", ".join(f"{d.tag} ({d.name})" for d in missing)
            )
        if invalid:
            errors.append(f"Invalid/unknown tags: {', '.join(invalid)}")

        verdict = ValidationVerdict(
            is_valid=not missing and not invalid,
            request_type=request_type,
            tag_space=space,
            missing_mandatory_tags=missing,
            invalid_tags=invalid,
            extra_tags=extra,
            errors=tuple(errors),
        )

        TLV_VALIDATIONS.labels(
            tag_space=space.value,
            request_type=request_type.value,
            result="valid" if verdict.is_valid else "invalid",
        ).inc()
        if extra:
            logger.info(
                f"Tags not expected for {request_type.value}: {', '.join(extra)}"
            )
        return verdict

    def get_requirements(
        self,
        request_type: Union[RequestType, str],
        tag_space: Union[TagSpace, str] = TagSpace.EMV,
    ) -> RequirementsView:
        """
        Get tag requirements for a request type.

        Tag identifiers without a definition are dropped.
        """
        request_type = RequestType.from_value(request_type)
        requirements = self.registry.requirements(request_type, tag_space)
        definitions = self.registry.definitions(tag_space)

        return RequirementsView(
            request_type=request_type,
            description=requirements.description,
            mandatory_tags=tuple(
                RequirementEntry(definitions[tag], required=True)
                for tag in requirements.mandatory_tags
                if tag in definitions
            ),
            optional_tags=tuple(
                RequirementEntry(definitions[tag], required=False)
                for tag in requirements.optional_tags
                if tag in definitions
            ),
        )


def infer_request_type(processing_code: Optional[str]) -> RequestType:
    """Determine the request type from the processing code (Field 3)."""
    if not processing_code:
        return RequestType.UNKNOWN
    return PROCESSING_CODE_REQUEST_TYPES.get(processing_code[:2], RequestType.UNKNOWN)


def validate_tags(
    tags: Iterable[Union[TlvRecord, str]],
    request_type: Union[RequestType, str],
    tag_space: Union[TagSpace, str] = TagSpace.EMV,
) -> ValidationVerdict:
    """Convenience function to validate a tag set."""
    return TagValidator().validate(tags, request_type, tag_space)


def get_requirements(
    request_type: Union[RequestType, str],
    tag_space: Union[TagSpace, str] = TagSpace.EMV,
) -> RequirementsView:
    """Convenience function to project the requirements of a request type."""
    return TagValidator().get_requirements(request_type, tag_space)


def resolve_request_type(
    request_type: Union[RequestType, str, None] = None,
    processing_code: Optional[str] = None,
) -> RequestType:
    """An explicit request type wins over one inferred from the processing code."""
    if request_type:
        return RequestType.from_value(request_type)
    return infer_request_type(processing_code)


def decode_and_validate(
    data: Union[bytes, str],
    tag_space: Union[TagSpace, str] = TagSpace.EMV,
    request_type: Union[RequestType, str, None] = None,
    processing_code: Optional[str] = None,
    registry: Optional[TagRegistry] = None,
) -> DecodeResult:
    """
    Decode TLV data and, when a request type is known, validate the tags.

    The result is unsuccessful when decoding fails or validation runs and
    finds the tag set invalid. The UNKNOWN request type skips validation.
    """
    resolved = resolve_request_type(request_type, processing_code)
    result = TlvParser(tag_space=tag_space, registry=registry).decode(data)
    if not result.success or resolved is RequestType.UNKNOWN:
        return result

    verdict = TagValidator(registry=registry).validate(result.records, resolved, tag_space)
    result.validation = verdict
    if not verdict.is_valid:
        result.success = False
        result.error = f"Validation failed: {', '.join(verdict.errors)}"
    return result
