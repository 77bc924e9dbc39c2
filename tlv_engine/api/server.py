"""
TLV Engine - API Server
FastAPI application factory and uvicorn runner.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from ..core.config import TlvEngineConfig, get_config
from .exception_handlers import register_exception_handlers
from .middleware import setup_middleware
from .tlv_endpoints import router as tlv_router

logger = logging.getLogger(__name__)


def create_app(config: Optional[TlvEngineConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = get_config()

    app = FastAPI(
        title="TLV Parser API with Validation",
        description="BER-TLV parsing and tag validation for EMV Field 55 and Field 48",
        version=config.version,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )
    app.state.config = config

    setup_middleware(app, config)
    register_exception_handlers(app)
    app.include_router(tlv_router, prefix=config.api_prefix)

    prefix = config.api_prefix

    @app.get("/")
    async def root():
        """Service banner with endpoint overview."""
        return {
            "message": "TLV Parser API with Validation",
            "version": app.version,
            "features": [
                "TLV Parsing (EMV Field 55 & Field 48)",
                "Transaction Type Validation",
                "ISO 8583 Compliance",
                "Tag Requirements Checking",
                "Processing Code Inference",
            ],
            "endpoints": {
                "parse": f"POST {prefix}/parse - Parse TLV data with optional validation",
                "validate": f"POST {prefix}/validate - Validate tag list against requirements",
                "requirements": f"GET {prefix}/requirements/{{requestType}} - Get tag requirements",
                "requestTypes": f"GET {prefix}/request-types - Get all supported request types",
                "tags": f"GET {prefix}/tags - Get all supported tags",
                "health": f"GET {prefix}/health - Health check",
            },
            "examples": {
                "parseWithValidation": {
                    "url": f"POST {prefix}/parse",
                    "body": {
                        "data": "9F2608B2E8B5C71A4BC3209A031909259C01009F3704AE9B0A8A",
                        "field": "emv",
                        "requestType": "financial",
                        "validateTags": True,
                    },
                },
                "validateTags": {
                    "url": f"POST {prefix}/validate",
                    "body": {
                        "tags": ["9F26", "9A", "9C"],
                        "requestType": "financial",
                        "field": "emv",
                    },
                },
            },
        }

    logger.info(f"{config.service_name} application created (prefix {prefix})")
    return app


def run_server(config: Optional[TlvEngineConfig] = None, reload: bool = False) -> None:
    """
    Run the API server.

    Args:
        config: Configuration object
        reload: Enable hot reloading (development only)
    """
    if config is None:
        config = get_config()

    logger.info(f"TLV Parser API server running on {config.rest_host}:{config.rest_port}")

    if reload:
        # uvicorn needs an import string to reload
        uvicorn.run(
            "tlv_engine.api.server:create_app",
            factory=True,
            host=config.rest_host,
            port=config.rest_port,
            reload=True,
            log_level=config.log_level.value.lower(),
        )
    else:
        uvicorn.run(
            create_app(config),
            host=config.rest_host,
            port=config.rest_port,
            log_level=config.log_level.value.lower(),
        )
