"""
TLV Engine - API Schemas
Pydantic models for request validation and documentation.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..protocols.emv.emv_codes import TagSpace


class ParseTlvRequest(BaseModel):
    """TLV parse request with optional validation."""

    data: str = Field(..., min_length=1, description="Hex encoded TLV data")
    field: TagSpace = Field(TagSpace.EMV, description="Tag space: emv (Field 55) or field48")
    request_type: Optional[str] = Field(
        None, alias="requestType", description="Transaction category to validate against"
    )
    processing_code: Optional[str] = Field(
        None,
        alias="processingCode",
        description="ISO 8583 Field 3, used to infer the request type",
    )
    validate_tags: bool = Field(
        False, alias="validateTags", description="Validate tags against request requirements"
    )

    class Config:
        populate_by_name = True


class ValidateTagsRequest(BaseModel):
    """Tag list validation request."""

    tags: List[str] = Field(..., description="Tag identifiers to validate")
    request_type: str = Field(..., alias="requestType", description="Transaction category")
    field: TagSpace = Field(TagSpace.EMV, description="Tag space: emv (Field 55) or field48")

    class Config:
        populate_by_name = True
