"""
KR check-in schemas.
"""
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import Field

from app.models.kr_checkin import CheckInPeriodType
from app.schemas.common import CamelModel


class CheckInCreate(CamelModel):
    """Body of POST /okr/kr-checkins."""
    kr_id: str = Field(..., min_length=1, max_length=20)
    year: int = Field(..., ge=2000, le=2100)
    period_type: CheckInPeriodType
    period_value: str = Field(..., min_length=1, max_length=10)
    confidence: int = Field(..., ge=0, le=100)
    commentary: Optional[str] = Field(None, max_length=5000)
    blockers: Optional[str] = Field(None, max_length=5000)
    next_actions: Optional[str] = Field(None, max_length=5000)


class CheckInResponse(CamelModel):
    id: str
    kr_id: str
    year: int
    period_type: CheckInPeriodType
    period_value: str
    confidence: int
    commentary: Optional[str] = None
    blockers: Optional[str] = None
    next_actions: Optional[str] = None
    created_by_id: Optional[str] = None
    created: datetime


class CheckInListResponse(CamelModel):
    kr_id: str
    year: Optional[int] = None
    items: List[CheckInResponse]
    total: int


class LatestCheckInsResponse(CamelModel):
    """Most recent check-in per KR, keyed by KR id."""
    year: int
    items: Dict[str, CheckInResponse]
