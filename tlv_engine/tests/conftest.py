"""
TLV Engine - Pytest Configuration and Fixtures
"""

import pytest
from fastapi.testclient import TestClient

from tlv_engine.api.server import create_app
from tlv_engine.core.config import Environment, TlvEngineConfig
from tlv_engine.protocols.emv import TagSpace, TagValidator, TlvParser


# Every mandatory EMV tag of the financial request type
FINANCIAL_TLV_HEX = (
    "5F2A020978"
    "82021980"
    "95050000008000"
    "9A03190925"
    "9C0100"
    "9F0206000000001000"
    "9F2608B2E8B5C71A4BC320"
    "9F270180"
    "9F3602001C"
    "9F3704AE9B0A8A"
)


@pytest.fixture
def test_config():
    """Create test configuration."""
    return TlvEngineConfig(environment=Environment.TESTING)


@pytest.fixture
def client(test_config):
    """API test client."""
    return TestClient(create_app(test_config))


@pytest.fixture
def emv_parser():
    return TlvParser(tag_space=TagSpace.EMV)


@pytest.fixture
def field48_parser():
    return TlvParser(tag_space=TagSpace.FIELD48)


@pytest.fixture
def validator():
    return TagValidator()


@pytest.fixture
def financial_hex():
    return FINANCIAL_TLV_HEX
