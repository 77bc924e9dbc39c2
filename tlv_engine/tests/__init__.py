"""
TLV Engine Tests

Test suite for:
- BER-TLV decoding and value interpretation
- Tag requirement validation and request type inference
- Reference tables and registry invariants
- REST API endpoints
- Configuration loading
"""
