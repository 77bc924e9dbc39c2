"""
EMV Protocol Codes and Reference Tables

Defines:
- Tag spaces (EMV Field 55, ISO 8583 Field 48)
- Data formats
- Transaction request types
- Tag definitions for both tag spaces
- Per-request-type mandatory/optional tag requirements
- TagRegistry, the read-only lookup used by the decoder and validator
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from tlv_engine.core.exceptions import (
    ConfigurationException,
    UnknownRequestTypeException,
    UnknownTagSpaceException,
)


class TagSpace(str, Enum):
    """Tag dictionaries a TLV stream can be decoded against."""

    EMV = "emv"  # Field 55, ICC system related data
    FIELD48 = "field48"  # Field 48, additional data

    @classmethod
    def from_value(cls, value: Union["TagSpace", str, None]) -> "TagSpace":
        """Resolve a tag space from its name or an alias."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.EMV
        key = str(value).strip().lower()
        aliases = {
            "emv": cls.EMV,
            "primary": cls.EMV,
            "field55": cls.EMV,
            "field48": cls.FIELD48,
            "auxiliary": cls.FIELD48,
        }
        if key not in aliases:
            raise UnknownTagSpaceException(value)
        return aliases[key]


class TagFormat(str, Enum):
    """EMV data element formats."""

    NUMERIC = "n"
    ALPHANUMERIC = "an"
    ALPHANUMERIC_SPECIAL = "ans"
    ALPHANUMERIC_PAD = "anp"
    BINARY = "b"
    AMOUNT_WITH_SIGN = "x"

    @property
    def is_text(self) -> bool:
        return self in (
            TagFormat.ALPHANUMERIC,
            TagFormat.ALPHANUMERIC_SPECIAL,
            TagFormat.ALPHANUMERIC_PAD,
        )


class RequestType(str, Enum):
    """ISO 8583 transaction categories driving tag requirements."""

    AUTHORIZATION = "authorization"  # 0100/0110
    FINANCIAL = "financial"  # 0200/0210
    TRICKLE_FEED = "trickle_feed"  # 0220/0230
    REVERSAL = "reversal"  # 0400/0410
    BATCH_UPLOAD = "batch_upload"  # 0320/0330
    SETTLEMENT = "settlement"  # 0520/0530
    NETWORK_MANAGEMENT = "network_management"  # 0800/0810
    PIN_CHANGE = "pin_change"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Union["RequestType", str]) -> "RequestType":
        """Resolve a request type from its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownRequestTypeException(value)

    @classmethod
    def concrete(cls) -> List["RequestType"]:
        """All request types except UNKNOWN."""
        return [rt for rt in cls if rt is not cls.UNKNOWN]


@dataclass(frozen=True)
class TagDefinition:
    """Reference definition of a single tag."""

    tag: str
    name: str
    description: str
    format: TagFormat
    length: Optional[int] = None  # informational, not enforced
    mandatory: Optional[bool] = None  # informational, see TransactionRequirements

    def to_dict(self) -> Dict:
        return {
            "tag": self.tag,
            "name": self.name,
            "description": self.description,
            "format": self.format.value,
            "length": self.length,
            "mandatory": self.mandatory,
        }


@dataclass(frozen=True)
class TransactionRequirements:
    """Mandatory and optional tags for one request type in one tag space."""

    mandatory_tags: Tuple[str, ...]
    optional_tags: Tuple[str, ...]
    description: str

    def __post_init__(self):
        overlap = set(self.mandatory_tags) & set(self.optional_tags)
        if overlap:
            raise ConfigurationException(
                f"Tags listed as both mandatory and optional: {', '.join(sorted(overlap))}"
            )

    @property
    def allowed_tags(self) -> frozenset:
        return frozenset(self.mandatory_tags) | frozenset(self.optional_tags)


def _definitions(*definitions: TagDefinition) -> Mapping[str, TagDefinition]:
    table: Dict[str, TagDefinition] = {}
    for definition in definitions:
        if definition.tag in table:
            raise ConfigurationException(f"Duplicate tag definition: {definition.tag}")
        table[definition.tag] = definition
    return MappingProxyType(table)


def _requirements(
    mandatory: Iterable[str], optional: Iterable[str], description: str
) -> TransactionRequirements:
    return TransactionRequirements(tuple(mandatory), tuple(optional), description)


# EMV Field 55 tags
EMV_TAGS: Mapping[str, TagDefinition] = _definitions(
    TagDefinition("5F2A", "Transaction Currency Code", "Currency code of the transaction", TagFormat.NUMERIC, 2, True),
    TagDefinition("5F34", "Application PAN Sequence Number", "Application Primary Account Number (PAN) Sequence Number", TagFormat.NUMERIC, 1),
    TagDefinition("71", "Issuer Script Template 1", "Scripts from the issuer sent to the terminal for delivery to the ICC", TagFormat.BINARY),
    TagDefinition("72", "Issuer Script Template 2", "Scripts from the issuer sent to the terminal for delivery to the ICC", TagFormat.BINARY),
    TagDefinition("82", "Application Interchange Profile", "Specifies the application functions that is supported by the card", TagFormat.BINARY, 2, True),
    TagDefinition("84", "Application Identifier (AID)", "Application Identifier / Dedicated File (DF) Name", TagFormat.BINARY),
    TagDefinition("86", "Issuer Script Command", "Contains a command for transmission to the ICC", TagFormat.BINARY),
    TagDefinition("8A", "Authorization Response Code", "Response Code from terminal or Issuer for online authorizations", TagFormat.ALPHANUMERIC, 2),
    TagDefinition("91", "Issuer Authentication Data", "Sent by the issuer if on-line issuer authentication is required", TagFormat.BINARY, 16),
    TagDefinition("95", "Terminal Verification Results", "Status of the different functions as seen by the terminal", TagFormat.BINARY, 5, True),
    TagDefinition("9A", "Transaction Date", "Transaction Date formatted as YYMMDD", TagFormat.NUMERIC, 3, True),
    TagDefinition("9B", "Transaction Status Information", "Indicates the functions performed in a transaction", TagFormat.BINARY, 2),
    TagDefinition("9C", "Transaction Type", "Transaction Type taken from transaction data", TagFormat.NUMERIC, 1, True),
    TagDefinition("9F02", "Amount, Authorized", "Transaction Amount taken from transaction data", TagFormat.NUMERIC, 6, True),
    TagDefinition("9F03", "Amount, Other", "Secondary amount associated with the transaction (cashback)", TagFormat.NUMERIC, 6),
    TagDefinition("9F09", "Application Version Number", "Terminal Application Version Number", TagFormat.BINARY, 2),
    TagDefinition("9F10", "Issuer Application Data", "Issuer Application Data retrieved from the card", TagFormat.BINARY),
    TagDefinition("9F18", "Issuer Script Identifier", "Identification of the Issuer Script", TagFormat.BINARY, 4),
    TagDefinition("9F1A", "Terminal Country Code", "Terminal Country Code from terminal initialization", TagFormat.NUMERIC, 2, True),
    TagDefinition("9F1E", "Interface Device Serial Number", "Unique and permanent serial number assigned to the Interface Device", TagFormat.ALPHANUMERIC, 8),
    TagDefinition("9F26", "Application Cryptogram", "Used to approve offline transactions", TagFormat.BINARY, 8, True),
    TagDefinition("9F27", "Cryptogram Information Data", "Used to approve offline transactions", TagFormat.BINARY, 1, True),
    TagDefinition("9F33", "Terminal Capabilities", "Specifies the capabilities of the terminal", TagFormat.BINARY, 3),
    TagDefinition("9F34", "Cardholder Verification Method Results", "Result of the last cardholder verification method", TagFormat.BINARY, 3),
    TagDefinition("9F35", "Terminal Type", "Specifies the type of terminal", TagFormat.NUMERIC, 1),
    TagDefinition("9F36", "Application Transaction Counter", "Application Transaction Counter from the card", TagFormat.BINARY, 2, True),
    TagDefinition("9F37", "Unpredictable Number", "Value to provide variability and uniqueness to the generation of cryptogram", TagFormat.BINARY, 4, True),
    TagDefinition("9F41", "Transaction Sequence Counter", "Counter maintained by the terminal that is incremented by one for each transaction", TagFormat.NUMERIC, 4),
    TagDefinition("9F4C", "ICC Dynamic Number", "Time-variant number generated by the ICC, to be captured by the terminal", TagFormat.BINARY),
    TagDefinition("9F53", "Transaction Category Code", "Transaction Category Code / Merchant Category Code", TagFormat.ALPHANUMERIC, 1),
    TagDefinition("9F5B", "Issuer Script Results", "Result of script processing", TagFormat.BINARY),
    TagDefinition("4F", "Application Identifier", "Identifies the application", TagFormat.BINARY),
    TagDefinition("9F6E", "Form Factor Indicator", "Form Factor Indicator, length depends on EMV implementation", TagFormat.BINARY),
)

# Field 48 additional data tags
FIELD48_TAGS: Mapping[str, TagDefinition] = _definitions(
    TagDefinition("001", "Fee Percent", "Fee percent in format: KOMUC (%): <fee percent>", TagFormat.ALPHANUMERIC_SPECIAL),
    TagDefinition("002", "New PIN Data", "New PIN data", TagFormat.BINARY, 8),
    TagDefinition("003", "Service ID", "Service identifier", TagFormat.ALPHANUMERIC_SPECIAL),
    TagDefinition("004", "Customer External Account Number", "Customer external account number", TagFormat.ALPHANUMERIC_SPECIAL),
    TagDefinition("005", "Customer Mobile Phone Number", "Customer mobile phone number", TagFormat.ALPHANUMERIC_SPECIAL),
    TagDefinition("013", "Card Verification Value", "CVV2/CVC2/CID/CAV for card-not-present service", TagFormat.ALPHANUMERIC_SPECIAL, 6),
    TagDefinition("014", "Card Verification Value Result", "Card verification value result code for card-not-present service", TagFormat.ALPHANUMERIC_SPECIAL, 1),
    TagDefinition("030", "Original RRN", "Original Retrieval Reference Number", TagFormat.ALPHANUMERIC_PAD, 12),
)

EMV_REQUIREMENTS: Mapping[RequestType, TransactionRequirements] = MappingProxyType({
    RequestType.AUTHORIZATION: _requirements(
        ["95", "9A", "9C", "82"],
        ["9F26", "9F27", "9F36", "9F37", "9F1A", "9F33", "9F1E", "5F2A", "84", "5F34"],
        "Authorization Request/Response (0100/0110) - Balance inquiry, card verification",
    ),
    RequestType.FINANCIAL: _requirements(
        ["5F2A", "82", "95", "9A", "9C", "9F02", "9F26", "9F27", "9F36", "9F37"],
        ["9F03", "9F09", "9F10", "9F1A", "9F1E", "9F33", "9F34", "9F35", "84", "5F34", "9F41", "9F53"],
        "Financial Transaction (0200/0210) - Purchase, cash advance, etc.",
    ),
    RequestType.TRICKLE_FEED: _requirements(
        ["95", "9A", "9C", "9F26", "9F27", "9F36"],
        ["5F2A", "82", "9F02", "9F03", "9F1A", "9F33", "9F34", "9F35", "84", "9F10"],
        "Trickle Feed Transaction (0220/0230) - Offline approved transactions",
    ),
    RequestType.REVERSAL: _requirements(
        ["95", "9F1E", "9F10", "9F36", "9F5B"],
        ["9A", "9C", "9F26", "9F27", "82", "5F2A"],
        "Reversal Transaction (0400/0410) - Transaction cancellation",
    ),
    RequestType.BATCH_UPLOAD: _requirements(
        ["9A", "9C"],
        ["95", "9F26", "9F27", "9F36", "9F37", "5F2A", "82", "9F02", "9F03"],
        "Batch Upload (0320/0330) - End of day batch processing",
    ),
    RequestType.SETTLEMENT: _requirements(
        [],
        ["9A"],
        "Settlement (0520/0530) - Financial reconciliation",
    ),
    RequestType.NETWORK_MANAGEMENT: _requirements(
        [],
        ["9A"],
        "Network Management (0800/0810) - Sign-on, sign-off, echo test",
    ),
    RequestType.PIN_CHANGE: _requirements(
        ["95", "9A", "9C", "82"],
        ["9F26", "9F27", "9F36", "9F37", "5F2A", "84"],
        "PIN Change Transaction - PIN modification and confirmation",
    ),
    RequestType.UNKNOWN: _requirements(
        [], [], "Unknown transaction type - no validation applied"
    ),
})

FIELD48_REQUIREMENTS: Mapping[RequestType, TransactionRequirements] = MappingProxyType({
    RequestType.AUTHORIZATION: _requirements(
        [], ["001", "013", "014"], "Authorization - Fee data, CVV verification"
    ),
    RequestType.FINANCIAL: _requirements(
        [],
        ["001", "003", "004", "005", "013", "014", "030"],
        "Financial - Service ID, customer data, verification values",
    ),
    RequestType.TRICKLE_FEED: _requirements(
        [], ["001", "003", "030"], "Trickle Feed - Basic transaction data"
    ),
    RequestType.REVERSAL: _requirements(
        [], ["030"], "Reversal - Original RRN reference"
    ),
    RequestType.BATCH_UPLOAD: _requirements(
        [], ["001", "003"], "Batch Upload - Fee and service data"
    ),
    RequestType.SETTLEMENT: _requirements(
        [], [], "Settlement - No additional data typically required"
    ),
    RequestType.NETWORK_MANAGEMENT: _requirements(
        [], [], "Network Management - No additional data required"
    ),
    RequestType.PIN_CHANGE: _requirements(
        ["002"], [], "PIN Change - New PIN data required"
    ),
    RequestType.UNKNOWN: _requirements(
        [], [], "Unknown transaction type - no validation applied"
    ),
})


class TagRegistry:
    """
    Read-only lookup over tag definitions and transaction requirements.

    One registry covers both tag spaces. Instances are built once and
    shared by reference; nothing mutates them after construction.
    """

    def __init__(
        self,
        definitions: Mapping[TagSpace, Mapping[str, TagDefinition]],
        requirements: Mapping[TagSpace, Mapping[RequestType, TransactionRequirements]],
    ):
        for space in TagSpace:
            if space not in definitions or space not in requirements:
                raise ConfigurationException(
                    f"Registry is missing tag space: {space.value}"
                )
            missing = [rt.value for rt in RequestType if rt not in requirements[space]]
            if missing:
                raise ConfigurationException(
                    f"No requirements for {', '.join(missing)} in tag space {space.value}"
                )

        self._definitions = MappingProxyType(dict(definitions))
        self._requirements = MappingProxyType(dict(requirements))

    def definitions(self, tag_space: Union[TagSpace, str]) -> Mapping[str, TagDefinition]:
        """All tag definitions of a tag space."""
        return self._definitions[TagSpace.from_value(tag_space)]

    def get_definition(
        self, tag: str, tag_space: Union[TagSpace, str]
    ) -> Optional[TagDefinition]:
        """Look up a tag definition, or None when the tag is not registered."""
        return self.definitions(tag_space).get(tag.upper())

    def is_registered(self, tag: str, tag_space: Union[TagSpace, str]) -> bool:
        return self.get_definition(tag, tag_space) is not None

    def requirements(
        self, request_type: Union[RequestType, str], tag_space: Union[TagSpace, str]
    ) -> TransactionRequirements:
        """Requirements of a request type in a tag space."""
        space = TagSpace.from_value(tag_space)
        return self._requirements[space][RequestType.from_value(request_type)]

    def get_tag_name(self, tag: str, tag_space: Union[TagSpace, str, None] = None) -> str:
        """
        Resolve a display name, trying the given tag space first and the
        remaining spaces afterwards.
        """
        tag = tag.upper()
        spaces = list(TagSpace)
        if tag_space is not None:
            preferred = TagSpace.from_value(tag_space)
            spaces.remove(preferred)
            spaces.insert(0, preferred)
        for space in spaces:
            definition = self._definitions[space].get(tag)
            if definition:
                return definition.name
        return "Unknown Tag"


DEFAULT_REGISTRY = TagRegistry(
    definitions={TagSpace.EMV: EMV_TAGS, TagSpace.FIELD48: FIELD48_TAGS},
    requirements={TagSpace.EMV: EMV_REQUIREMENTS, TagSpace.FIELD48: FIELD48_REQUIREMENTS},
)


def get_tag_definitions(tag_space: Union[TagSpace, str] = TagSpace.EMV) -> List[TagDefinition]:
    """All known tag definitions of a tag space, in registry order."""
    return list(DEFAULT_REGISTRY.definitions(tag_space).values())


def get_tag_name(tag: str, tag_space: Union[TagSpace, str, None] = None) -> str:
    """Get the name of a tag."""
    return DEFAULT_REGISTRY.get_tag_name(tag, tag_space)


def get_tag_format(tag: str, tag_space: Union[TagSpace, str] = TagSpace.EMV) -> Optional[TagFormat]:
    """Get the format of a tag, or None when the tag is not registered."""
    definition = DEFAULT_REGISTRY.get_definition(tag, tag_space)
    return definition.format if definition else None
