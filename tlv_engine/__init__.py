"""
TLV Engine

BER-TLV decoding and tag-requirement validation for EMV Field 55 and
ISO 8583 Field 48 additional data.
"""

__version__ = "2.0.0"
