"""
TLV Engine - TLV API Endpoints
REST API for TLV parsing, tag validation and requirement lookup.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..core.config import TlvEngineConfig, get_config
from ..protocols.emv import (
    RequestType,
    TagSpace,
    ValidationVerdict,
    TagValidator,
    decode,
    decode_and_validate,
    format_for_display,
    get_tag_definitions,
    resolve_request_type,
)
from .schemas import ParseTlvRequest, ValidateTagsRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["TLV"])

_validator = TagValidator()


def _app_config(request: Request) -> TlvEngineConfig:
    return getattr(request.app.state, "config", None) or get_config()


def _verdict_to_response(verdict: ValidationVerdict) -> Dict[str, Any]:
    """API shape of a verdict; empty collections are left out."""
    body: Dict[str, Any] = {
        "isValid": verdict.is_valid,
        "requestType": verdict.request_type.value,
    }
    if verdict.errors:
        body["errors"] = list(verdict.errors)
    if verdict.missing_mandatory_tags:
        body["missingMandatoryTags"] = [
            {
                "tag": definition.tag,
                "name": definition.name,
                "description": definition.description,
                "format": definition.format.value,
                "length": definition.length,
            }
            for definition in verdict.missing_mandatory_tags
        ]
    if verdict.invalid_tags:
        body["invalidTags"] = list(verdict.invalid_tags)
    if verdict.extra_tags:
        body["extraTags"] = list(verdict.extra_tags)
    return body


@router.post("/parse")
async def parse_tlv_data(body: ParseTlvRequest, request: Request):
    """
    Parse TLV data and return JSON with optional validation.

    Returns 400 when the data cannot be decoded and 422 when validation
    was requested and the tag set is invalid.
    """
    config = _app_config(request)
    if len(body.data) > config.max_data_length:
        raise HTTPException(
            status_code=413,
            detail=f"Data exceeds maximum length of {config.max_data_length} characters",
        )

    if body.validate_tags:
        request_type = resolve_request_type(body.request_type, body.processing_code)
        result = decode_and_validate(body.data, body.field, request_type)
    else:
        result = decode(body.data, body.field)

    if not result.success and result.validation is None:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": result.error},
        )

    response: Dict[str, Any] = {
        "success": result.success,
        "fieldType": body.field.value,
        "totalTags": len(result.records),
        "totalLength": result.total_length,
        "tags": format_for_display(result.records, body.field),
    }

    if result.validation is not None:
        response["validation"] = _verdict_to_response(result.validation)
        if not result.validation.is_valid:
            response["error"] = result.error
            return JSONResponse(status_code=422, content=response)

    return response


@router.post("/validate")
async def validate_tag_list(body: ValidateTagsRequest):
    """Validate a tag list against specific transaction requirements."""
    verdict = _validator.validate(body.tags, body.request_type, body.field)

    response = {
        "success": verdict.is_valid,
        "fieldType": body.field.value,
        "validation": _verdict_to_response(verdict),
    }

    if not verdict.is_valid:
        return JSONResponse(status_code=422, content=response)
    return response


@router.get("/requirements/{request_type}")
async def get_request_requirements(
    request_type: str,
    field: TagSpace = Query(TagSpace.EMV, description="Tag space"),
):
    """Get tag requirements for a specific request type."""
    valid_types = [rt.value for rt in RequestType.concrete()]
    if request_type not in valid_types:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid request type. Valid types: {', '.join(valid_types)}",
        )

    requirements = _validator.get_requirements(request_type, field)
    return {"success": True, "fieldType": field.value, **requirements.to_dict()}


@router.get("/tags")
async def list_tags(field: TagSpace = Query(TagSpace.EMV, description="Tag space")):
    """Get all supported tags of a tag space."""
    tags = get_tag_definitions(field)
    return {
        "success": True,
        "fieldType": field.value,
        "totalTags": len(tags),
        "tags": [definition.to_dict() for definition in tags],
    }


@router.get("/request-types")
async def list_request_types():
    """Get all supported request types with their requirements."""
    return {
        "success": True,
        "requestTypes": [
            {
                "type": request_type.value,
                "emvRequirements": _validator.get_requirements(
                    request_type, TagSpace.EMV
                ).to_dict(),
                "field48Requirements": _validator.get_requirements(
                    request_type, TagSpace.FIELD48
                ).to_dict(),
            }
            for request_type in RequestType.concrete()
        ],
    }


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "success": True,
        "message": "TLV Parser API is running",
        "timestamp": datetime.now().isoformat(),
        "features": [
            "TLV Parsing",
            "EMV Tag Validation",
            "Field 48 Support",
            "Transaction Type Validation",
            "ISO 8583 Compliance",
        ],
    }
