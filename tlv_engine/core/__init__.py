"""
TLV Engine - Core Module

Configuration management and the exception hierarchy shared by the
decoder, the validator and the API.
"""

from .config import (
    Environment,
    LogLevel,
    TlvEngineConfig,
    get_config,
    set_config,
    load_config,
)
from .exceptions import (
    TlvEngineException,
    ConfigurationException,
    TlvDecodeException,
    MalformedInputException,
    InsufficientDataException,
    LengthParseException,
    UnknownRequestTypeException,
    UnknownTagSpaceException,
)

__all__ = [
    "Environment",
    "LogLevel",
    "TlvEngineConfig",
    "get_config",
    "set_config",
    "load_config",
    "TlvEngineException",
    "ConfigurationException",
    "TlvDecodeException",
    "MalformedInputException",
    "InsufficientDataException",
    "LengthParseException",
    "UnknownRequestTypeException",
    "UnknownTagSpaceException",
]
