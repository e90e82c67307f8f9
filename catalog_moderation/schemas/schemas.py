"""Pydantic schemas for API request/response serialization."""

import math
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Literal, Union, Annotated
from datetime import datetime


# ---- Envelope ----
def ok(data: Any) -> dict:
    return {"success": True, "data": data}


def paginated(items: list, total: int, page: int, per_page: int) -> dict:
    return {
        "items": items,
        "totalItems": total,
        "currentPage": page,
        "totalPages": math.ceil(total / per_page) if total else 0,
        "perPage": per_page,
    }


# ---- Consent ----
class ConsentFlags(BaseModel):
    age_verification: bool = False
    cc0_licensing: bool = False
    public_commons: bool = False
    freedom_of_panorama: bool = False


# ---- Submissions ----
class _SubmissionBase(BaseModel):
    subject_type: Literal["artwork", "artist"]
    payload_new: Dict[str, Any]
    notes: Optional[str] = Field(None, max_length=2000)
    lat: Optional[float] = None
    lon: Optional[float] = None
    consent: ConsentFlags = Field(default_factory=ConsentFlags)
    consent_version: Optional[str] = None

class NewEntrySubmission(_SubmissionBase):
    submission_type: Literal["new_entry"]

class FieldEditSubmission(_SubmissionBase):
    submission_type: Literal["field_edit"]
    subject_ref: str = Field(..., min_length=1)
    payload_old: Dict[str, Any] = Field(default_factory=dict)

SubmissionCreate = Annotated[
    Union[NewEntrySubmission, FieldEditSubmission],
    Field(discriminator="submission_type"),
]

class SubmissionOut(BaseModel):
    id: str
    submission_type: str
    subject_type: str
    subject_ref: Optional[str] = None
    actor_token: str
    payload_old: Dict[str, Any]
    payload_new: Dict[str, Any]
    lat: Optional[float] = None
    lon: Optional[float] = None
    notes: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewer_token: Optional[str] = None
    review_notes: Optional[str] = None

class NearbyArtwork(BaseModel):
    id: str
    title: Optional[str] = None
    lat: float
    lon: float
    distance_meters: float


# ---- Moderation ----
class ReviewRequest(BaseModel):
    action: str = Field(..., min_length=1)
    notes: Optional[str] = None


# ---- Admin ----
class PermissionChangeRequest(BaseModel):
    actor_token: str = Field(..., min_length=1)
    capability: str
    notes: Optional[str] = Field(None, max_length=500)

class AuditLogOut(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    action: str
    actor_token: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    old_data: Optional[Any] = None
    new_data: Optional[Any] = None
    metadata: Optional[Any] = None
    recorded_at: Optional[datetime] = None

class PermissionGrantOut(BaseModel):
    id: int
    actor_token: str
    capability: str
    granted_by: str
    granted_at: Optional[datetime] = None
    is_active: bool
    notes: Optional[str] = None

    class Config:
        from_attributes = True
