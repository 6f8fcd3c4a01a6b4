"""
Pydantic models for civic issues, comments and upvotes.

The same models validate REST request bodies and the client core's
operation intents, so a malformed issue is rejected before either data
path is touched.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class IssueCategory(str, Enum):
    INFRASTRUCTURE = "Infrastructure"
    ENVIRONMENT = "Environment"
    SAFETY = "Safety"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    PUBLIC_SERVICES = "Public Services"
    OTHER = "Other"


class IssueStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class IssuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Columns a caller may sort by. Anything else is a validation error.
SORTABLE_FIELDS = ("created_at", "updated_at", "upvotes", "priority", "status", "title")

_POINT_RE = re.compile(r"^\s*POINT\s*\(\s*(-?[\d.]+)\s+(-?[\d.]+)\s*\)\s*$", re.IGNORECASE)


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")

    def to_point(self) -> str:
        """PostGIS POINT literal (longitude first)."""
        return f"POINT({self.lng} {self.lat})"


def parse_coordinates(value: Any) -> Optional[Dict[str, float]]:
    """
    Accept {lat, lng}, a GeoJSON point or a POINT(lng lat) literal.
    Unknown encodings (e.g. raw WKB hex) read back as None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Coordinates):
        return value.model_dump()
    if isinstance(value, dict):
        if "lat" in value and "lng" in value:
            return {"lat": value["lat"], "lng": value["lng"]}
        coords = value.get("coordinates")
        if value.get("type") == "Point" and isinstance(coords, (list, tuple)) and len(coords) == 2:
            return {"lat": coords[1], "lng": coords[0]}
        return None
    if isinstance(value, str):
        match = _POINT_RE.match(value)
        if match:
            return {"lat": float(match.group(2)), "lng": float(match.group(1))}
    return None


class IssueCreate(BaseModel):
    """Fields a citizen provides when reporting an issue."""
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=1000)
    category: IssueCategory
    priority: IssuePriority = IssuePriority.MEDIUM
    location_description: Optional[str] = Field(None, max_length=500)
    location_coordinates: Optional[Coordinates] = None
    image_url: Optional[str] = None

    class Config:
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "title": "Pothole on Main Street",
                "description": "Large pothole near the bus stop, cars swerving into the cycle lane.",
                "category": "Infrastructure",
                "priority": "high",
                "location_description": "Main St & 3rd Ave",
                "location_coordinates": {"lat": 40.7128, "lng": -74.006},
            }
        }

    @field_validator("title", "description", "location_description", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("location_coordinates", mode="before")
    @classmethod
    def _coordinates(cls, value):
        if isinstance(value, str):
            return parse_coordinates(value)
        return value

    def to_row(self) -> Dict[str, Any]:
        """Column values for an insert into civic_issues."""
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "location_description": self.location_description,
            "location_coordinates": self.location_coordinates.to_point() if self.location_coordinates else None,
            "image_url": self.image_url,
        }


class IssueUpdate(BaseModel):
    """Partial update; only fields that were sent are written."""
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    category: Optional[IssueCategory] = None
    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None

    class Config:
        extra = "ignore"

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class IssueQuery(BaseModel):
    """
    Filters, sort and range for issue listings.
    Both data paths take this exact model, so their result order agrees.
    """
    status: Optional[IssueStatus] = None
    category: Optional[IssueCategory] = None
    priority: Optional[IssuePriority] = None
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)
    sort_by: str = "created_at"
    sort_order: SortOrder = SortOrder.DESC

    class Config:
        extra = "ignore"

    @field_validator("status", "category", "priority", mode="before")
    @classmethod
    def _all_means_none(cls, value):
        if value in ("", "all"):
            return None
        return value

    @field_validator("sort_by")
    @classmethod
    def _sortable(cls, value):
        if value not in SORTABLE_FIELDS:
            raise ValueError(f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}")
        return value

    def to_params(self) -> Dict[str, Any]:
        """Query-string form for the REST API."""
        return {k: v for k, v in self.model_dump(mode="json").items() if v is not None}


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)

    @field_validator("content", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class Comment(BaseModel):
    id: str
    issue_id: Optional[str] = None
    user_id: Optional[str] = None
    content: str
    created_at: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None

    class Config:
        extra = "ignore"


class Issue(BaseModel):
    """Canonical issue as either data path returns it."""
    id: str
    user_id: Optional[str] = None
    title: str
    description: str
    category: str
    location_coordinates: Optional[Coordinates] = None
    location_description: Optional[str] = None
    status: IssueStatus = IssueStatus.PENDING
    priority: IssuePriority = IssuePriority.MEDIUM
    image_url: Optional[str] = None
    upvotes: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    comments_count: int = 0
    user_has_upvoted: bool = False
    upvoted_at: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None
    issue_comments: List[Comment] = Field(default_factory=list)

    class Config:
        extra = "ignore"

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _str_id(cls, value):
        return str(value) if value is not None else value

    @field_validator("location_coordinates", mode="before")
    @classmethod
    def _coordinates(cls, value):
        return parse_coordinates(value)

    @field_validator("upvotes", mode="before")
    @classmethod
    def _upvotes(cls, value):
        return value or 0


class IssuePage(BaseModel):
    items: List[Issue] = Field(default_factory=list)
    limit: int
    offset: int
    total: int


class UpvoteResult(BaseModel):
    issue_id: str
    upvoted: bool
    upvotes: Optional[int] = None
