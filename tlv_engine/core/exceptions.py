"""
TLV Engine - Custom Exceptions

This module defines the exception hierarchy raised by the decoder,
the validator and the configuration layer.
"""

from typing import Any, Dict, Optional


class TlvEngineException(Exception):
    """Base exception for all TLV Engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "TLV_ENGINE_ERROR"
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (Code: {self.error_code}, Context: {self.context})"
        return f"{self.message} (Code: {self.error_code})"


class ConfigurationException(TlvEngineException):
    """Exception raised for configuration and reference-data errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            error_code="CONFIG_ERROR",
            context={"config_key": config_key} if config_key else {},
        )


class TlvDecodeException(TlvEngineException):
    """Base exception for structural TLV decoding failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "TLV_DECODE_ERROR",
        tag: Optional[str] = None,
        position: Optional[int] = None,
    ):
        context = {}
        if tag:
            context["tag"] = tag
        if position is not None:
            context["position"] = position

        super().__init__(message, error_code=error_code, context=context)
        self.tag = tag
        self.position = position


class MalformedInputException(TlvDecodeException):
    """Raised when the input is not a well-formed hex string."""

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message, error_code="TLV_MALFORMED_INPUT", position=position)


class InsufficientDataException(TlvDecodeException):
    """Raised when a declared value length runs past the end of the data."""

    def __init__(self, tag: str, position: int, required: int, available: int):
        super().__init__(
            f"Insufficient data for tag {tag} at position {position}: "
            f"needs {required} bytes, {available} available",
            error_code="TLV_INSUFFICIENT_DATA",
            tag=tag,
            position=position,
        )
        self.required = required
        self.available = available


class LengthParseException(TlvDecodeException):
    """Raised when a length field is missing, truncated or malformed."""

    def __init__(self, tag: str, position: int, reason: str):
        super().__init__(
            f"Invalid length for tag {tag} at position {position}: {reason}",
            error_code="TLV_LENGTH_PARSE_ERROR",
            tag=tag,
            position=position,
        )
        self.reason = reason


class UnknownRequestTypeException(TlvEngineException):
    """Raised when a transaction category is not part of the enumeration."""

    def __init__(self, request_type: Any):
        super().__init__(
            f"Unknown request type: {request_type}",
            error_code="UNKNOWN_REQUEST_TYPE",
            context={"request_type": str(request_type)},
        )
        self.request_type = request_type


class UnknownTagSpaceException(TlvEngineException):
    """Raised when a tag space name is not recognised."""

    def __init__(self, tag_space: Any):
        super().__init__(
            f"Unknown tag space: {tag_space}",
            error_code="UNKNOWN_TAG_SPACE",
            context={"tag_space": str(tag_space)},
        )
        self.tag_space = tag_space
