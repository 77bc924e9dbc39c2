"""
Display formatting for decoded TLV records.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from tlv_engine.protocols.emv.emv_codes import DEFAULT_REGISTRY, TagRegistry, TagSpace
from tlv_engine.protocols.emv.emv_tlv import SignedAmount, TlvRecord


def format_for_display(
    records: Iterable[TlvRecord],
    tag_space: Union[TagSpace, str, None] = None,
    registry: Optional[TagRegistry] = None,
) -> List[Dict[str, Any]]:
    """
    Map records to the display shape used by the API.

    Names are resolved in the given tag space first, then in the other one.
    """
    registry = registry or DEFAULT_REGISTRY
    formatted = []
    for record in records:
        parsed = record.parsed_value
        if isinstance(parsed, SignedAmount):
            parsed = parsed.to_dict()
        formatted.append(
            {
                "tag": record.tag,
                "name": registry.get_tag_name(record.tag, tag_space),
                "description": record.description,
                "length": record.length,
                "rawValue": record.value,
                "parsedValue": parsed,
            }
        )
    return formatted
