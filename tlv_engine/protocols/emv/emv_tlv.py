"""
EMV TLV (Tag-Length-Value) Decoder

Handles BER-TLV decoding of EMV Field 55 and Field 48 data supplied as
hex strings. Supports one- and two-byte tags and short/long form definite
lengths. Tags of three bytes or more are not supported: the tag is cut
after its second byte.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from prometheus_client import Counter, Histogram

from tlv_engine.core.exceptions import (
    InsufficientDataException,
    LengthParseException,
    MalformedInputException,
    TlvDecodeException,
)
from tlv_engine.protocols.emv.emv_codes import (
    DEFAULT_REGISTRY,
    TagDefinition,
    TagFormat,
    TagRegistry,
    TagSpace,
)

logger = logging.getLogger(__name__)

# Metrics
TLV_DECODE_REQUESTS = Counter(
    "tlv_decode_requests_total",
    "Total TLV decode requests",
    ["tag_space", "status"],
)

TLV_DECODE_LATENCY = Histogram(
    "tlv_decode_latency_seconds",
    "TLV decode latency",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1],
)

UNKNOWN_TAG_DESCRIPTION = "Unknown tag"

_WHITESPACE = re.compile(r"\s+")
_NON_HEX = re.compile(r"[^0-9A-F]")


@dataclass(frozen=True)
class SignedAmount:
    """Amount interpreted from the signed amount format ('x')."""

    sign: str
    amount: str

    @property
    def is_negative(self) -> bool:
        return self.sign == "-"

    def to_dict(self) -> Dict[str, str]:
        return {"sign": self.sign, "amount": self.amount}

    def __str__(self) -> str:
        return f"{self.sign}{self.amount}"


@dataclass(frozen=True)
class TlvRecord:
    """One decoded TLV unit."""

    tag: str
    length: int
    value: str
    description: str = UNKNOWN_TAG_DESCRIPTION
    parsed_value: Union[str, SignedAmount, None] = None
    header_length: int = 0  # tag bytes + length field bytes

    @property
    def tag_length(self) -> int:
        """Get tag length in bytes."""
        return len(self.tag) // 2

    @property
    def encoded_length(self) -> int:
        """Total bytes this unit occupied in the stream."""
        return self.header_length + self.length

    @property
    def value_bytes(self) -> bytes:
        return bytes.fromhex(self.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        parsed = self.parsed_value
        if isinstance(parsed, SignedAmount):
            parsed = parsed.to_dict()
        return {
            "tag": self.tag,
            "length": self.length,
            "value": self.value,
            "description": self.description,
            "parsed_value": parsed,
        }

    def __str__(self) -> str:
        return f"TLV({self.tag}, len={self.length}, value={self.value[:20]}...)"


@dataclass
class DecodeResult:
    """Outcome of decoding one hex stream."""

    success: bool
    records: List[TlvRecord] = field(default_factory=list)
    total_length: int = 0
    error: Optional[str] = None
    validation: Optional[Any] = None  # ValidationVerdict, set by decode_and_validate

    @property
    def tags(self) -> List[str]:
        return [record.tag for record in self.records]

    def get(self, tag: str) -> Optional[TlvRecord]:
        """Get the first record with the given tag."""
        tag = tag.upper()
        for record in self.records:
            if record.tag == tag:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "data": [record.to_dict() for record in self.records],
            "total_length": self.total_length,
        }
        if self.error:
            result["error"] = self.error
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        return result


def hex_to_ascii(value_hex: str) -> str:
    """
    Convert hex to text. Printable ASCII bytes (32-126) become characters,
    anything else is kept inline as a \\xNN escape.
    """
    chars = []
    for i in range(0, len(value_hex), 2):
        pair = value_hex[i : i + 2]
        code = int(pair, 16)
        if 32 <= code <= 126:
            chars.append(chr(code))
        else:
            chars.append(f"\\x{pair}")
    return "".join(chars)


def parse_signed_amount(value_hex: str) -> SignedAmount:
    """Split a signed amount: a leading 'D' nibble means negative."""
    if not value_hex:
        return SignedAmount(sign="+", amount="0")
    sign = "-" if value_hex[0].upper() == "D" else "+"
    return SignedAmount(sign=sign, amount=value_hex[1:])


def interpret_value(
    value_hex: str, definition: Optional[TagDefinition]
) -> Union[str, SignedAmount]:
    """
    Interpret a raw value according to its tag's format.

    Unregistered tags, empty values and numeric/binary formats are returned
    as raw hex. Interpretation never raises: failures fall back to raw hex.
    """
    if definition is None or not value_hex:
        return value_hex

    try:
        if definition.format.is_text:
            return hex_to_ascii(value_hex)
        if definition.format is TagFormat.AMOUNT_WITH_SIGN:
            return parse_signed_amount(value_hex)
        return value_hex
    except (ValueError, TypeError) as e:
        logger.debug(f"Could not interpret value of tag {definition.tag}: {e}")
        return value_hex


class TlvParser:
    """
    Decoder for BER-TLV encoded hex data.

    Handles:
    - One- and two-byte tags
    - Short and long form definite lengths
    - Format-aware value interpretation

    Structural errors abort the whole decode; no partial record list is
    returned on failure.
    """

    def __init__(
        self,
        tag_space: Union[TagSpace, str] = TagSpace.EMV,
        registry: Optional[TagRegistry] = None,
    ):
        """
        Initialize parser.

        Args:
            tag_space: Tag dictionary used to describe and interpret values
            registry: Reference data lookup, defaults to the built-in tables
        """
        self.tag_space = TagSpace.from_value(tag_space)
        self.registry = registry or DEFAULT_REGISTRY

    @staticmethod
    def normalize(data: Union[bytes, str]) -> bytes:
        """
        Strip whitespace, uppercase and convert hex input to bytes.

        Raises:
            MalformedInputException: odd length or non-hex characters
        """
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)

        clean = _WHITESPACE.sub("", data).upper()
        if len(clean) % 2 != 0:
            raise MalformedInputException(
                f"Invalid hex data length (must be even): {len(clean)} characters"
            )

        match = _NON_HEX.search(clean)
        if match:
            raise MalformedInputException(
                f"Invalid hex character '{match.group()}' at position {match.start()}",
                position=match.start(),
            )

        return bytes.fromhex(clean)

    def parse(self, data: Union[bytes, str]) -> List[TlvRecord]:
        """
        Parse TLV data.

        Args:
            data: TLV data as bytes or hex string

        Returns:
            List of TlvRecord elements in stream order

        Raises:
            TlvDecodeException: on malformed input, lengths or truncated values
        """
        return self._parse_tlv(self.normalize(data))

    def decode(self, data: Union[bytes, str]) -> DecodeResult:
        """Parse TLV data, reporting structural failures in the result."""
        start_time = time.time()
        try:
            records = self.parse(data)
        except TlvDecodeException as e:
            logger.warning(f"TLV decode failed ({self.tag_space.value}): {e.message}")
            TLV_DECODE_REQUESTS.labels(
                tag_space=self.tag_space.value, status=e.error_code.lower()
            ).inc()
            return DecodeResult(success=False, error=e.message)
        finally:
            TLV_DECODE_LATENCY.observe(time.time() - start_time)

        TLV_DECODE_REQUESTS.labels(tag_space=self.tag_space.value, status="success").inc()
        return DecodeResult(
            success=True,
            records=records,
            total_length=sum(record.encoded_length for record in records),
        )

    def _parse_tlv(self, data: bytes) -> List[TlvRecord]:
        """Walk the byte stream from start to end."""
        records = []
        offset = 0
        end = len(data)

        while offset < end:
            tag, tag_len = self._parse_tag(data, offset)
            if tag is None or offset + tag_len >= end:
                # Not enough bytes left for a tag and its length: trailing padding
                logger.debug(f"Ignoring {end - offset} trailing byte(s) at position {offset}")
                break

            length, len_bytes = self._parse_length(data, offset + tag_len, tag)
            value_start = offset + tag_len + len_bytes

            if value_start + length > end:
                raise InsufficientDataException(
                    tag=tag,
                    position=offset,
                    required=length,
                    available=end - value_start,
                )

            value = data[value_start : value_start + length]
            records.append(self._build_record(tag, value, tag_len + len_bytes))
            offset = value_start + length

        return records

    def _parse_tag(self, data: bytes, offset: int) -> Tuple[Optional[str], int]:
        """Parse a one- or two-byte tag; (None, 0) when the data runs out."""
        if offset >= len(data):
            return None, 0

        first_byte = data[offset]

        # Multi-byte tag when bits 5-1 are all set
        if (first_byte & 0x1F) == 0x1F:
            if offset + 2 > len(data):
                return None, 0
            second_byte = data[offset + 1]
            if second_byte & 0x80:
                logger.warning(
                    f"Tag {first_byte:02X}{second_byte:02X} at position {offset} continues "
                    f"past two bytes; longer tags are not supported"
                )
            return f"{first_byte:02X}{second_byte:02X}", 2

        return f"{first_byte:02X}", 1

    def _parse_length(self, data: bytes, offset: int, tag: str) -> Tuple[int, int]:
        """Parse a BER-TLV definite length; returns (length, bytes used)."""
        first_byte = data[offset]

        if first_byte <= 0x7F:
            # Short form
            return first_byte, 1

        # Long form: low 7 bits give the number of length bytes
        num_bytes = first_byte & 0x7F
        if num_bytes == 0:
            raise LengthParseException(tag, offset, "indefinite length form is not supported")

        available = len(data) - offset - 1
        if num_bytes > available:
            raise LengthParseException(
                tag,
                offset,
                f"long form declares {num_bytes} length bytes, {available} available",
            )

        length = int.from_bytes(data[offset + 1 : offset + 1 + num_bytes], "big")
        return length, 1 + num_bytes

    def _build_record(self, tag: str, value: bytes, header_length: int) -> TlvRecord:
        definition = self.registry.get_definition(tag, self.tag_space)
        value_hex = value.hex().upper()

        record = TlvRecord(
            tag=tag,
            length=len(value),
            value=value_hex,
            description=definition.description if definition else UNKNOWN_TAG_DESCRIPTION,
            parsed_value=interpret_value(value_hex, definition),
            header_length=header_length,
        )
        logger.debug(f"Decoded {record}")
        return record


def parse_tlv(
    data: Union[bytes, str], tag_space: Union[TagSpace, str] = TagSpace.EMV
) -> List[TlvRecord]:
    """
    Convenience function to parse TLV data.

    Args:
        data: TLV data as bytes or hex string
        tag_space: Tag dictionary to decode against

    Returns:
        List of TlvRecord elements
    """
    return TlvParser(tag_space=tag_space).parse(data)


def decode(
    data: Union[bytes, str], tag_space: Union[TagSpace, str] = TagSpace.EMV
) -> DecodeResult:
    """
    Convenience function to decode TLV data without raising on
    structural errors.
    """
    return TlvParser(tag_space=tag_space).decode(data)


def tlv_to_dict(
    data: Union[bytes, str], tag_space: Union[TagSpace, str] = TagSpace.EMV
) -> Dict[str, str]:
    """
    Parse TLV data to a flat dictionary of tag -> raw hex value.
    Later duplicates overwrite earlier ones.
    """
    return {record.tag: record.value for record in parse_tlv(data, tag_space)}
