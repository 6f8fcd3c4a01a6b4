"""
Pydantic base models for request/response validation.

Every REST response uses the same envelope:
    {success, data?, error?, message?, pagination?}
"""

from pydantic import BaseModel, Field
from typing import Any, List, Optional


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int


class ApiResponse(BaseModel):
    """
    Response envelope shared by every endpoint.
    The client core parses primary-path responses with this model.
    """
    success: bool = True
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None
    pagination: Optional[Pagination] = None
    details: List[Any] = Field(default_factory=list)

    class Config:
        extra = "ignore"


def envelope(data: Any = None, message: Optional[str] = None, pagination: Optional[dict] = None) -> dict:
    """Build a success envelope, dropping keys that have nothing to say."""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return body
