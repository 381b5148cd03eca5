from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.expertise import ExpertiseDecision


class ExpertiseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    expert_id: Optional[str] = None
    decision: ExpertiseDecision
    rejection_reason: Optional[str] = None
    rejection_feedback: Optional[str] = None
    document_url: Optional[str] = None
    technical_report: Optional[str] = None
    condition_score: Optional[int] = None
    estimated_value: Optional[float] = None
    inspection_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)
    feedback: Optional[str] = Field(default=None, max_length=1000)


class ExpertiseReportUpdate(BaseModel):
    technical_report: Optional[str] = Field(default=None, max_length=5000)
    condition_score: Optional[int] = Field(default=None, ge=0, le=100)
    estimated_value: Optional[float] = Field(default=None, ge=0)
    inspection_date: Optional[datetime] = None


class DocumentRequest(BaseModel):
    document_url: str = Field(min_length=1, max_length=500)
