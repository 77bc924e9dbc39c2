"""
TLV Engine - API Module

REST interface over the TLV decoder and tag validator.
"""

from .server import create_app, run_server
from .tlv_endpoints import router

__all__ = [
    "create_app",
    "run_server",
    "router",
]
