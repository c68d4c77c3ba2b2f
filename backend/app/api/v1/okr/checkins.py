"""
KR check-in endpoints.

The ledger is append-only: check-ins can be created and read, never edited.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.core.config import settings
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.checkin import (
    CheckInCreate, CheckInResponse, CheckInListResponse, LatestCheckInsResponse,
)
from app.services.checkins import CheckInLedger
from app.api.v1.okr.deps import get_ledger

router = APIRouter(prefix="/kr-checkins")


# Declared before /{kr_id} so "latest" is not taken for a KR id
@router.get("/latest", response_model=LatestCheckInsResponse)
async def get_latest_checkins(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    ledger: CheckInLedger = Depends(get_ledger),
    current_user: User = Depends(get_current_user)
):
    """Most recent check-in of every KR for the year."""
    year = year or settings.OKR_YEAR
    latest = await ledger.get_latest_per_kr(year)
    return LatestCheckInsResponse(
        year=year,
        items={kr_id: CheckInResponse.model_validate(c) for kr_id, c in latest.items()},
    )


@router.get("/{kr_id}", response_model=CheckInListResponse)
async def list_kr_checkins(
    kr_id: str,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    ledger: CheckInLedger = Depends(get_ledger),
    current_user: User = Depends(get_current_user)
):
    """Check-in history of one KR, newest first."""
    checkins = await ledger.list_checkins(kr_id, year)
    return CheckInListResponse(
        kr_id=kr_id,
        year=year,
        items=[CheckInResponse.model_validate(c) for c in checkins],
        total=len(checkins),
    )


@router.post("", response_model=CheckInResponse, status_code=status.HTTP_201_CREATED)
async def create_checkin(
    data: CheckInCreate,
    ledger: CheckInLedger = Depends(get_ledger),
    current_user: User = Depends(get_current_user)
):
    """Record a check-in against a KR."""
    checkin = await ledger.append_checkin(
        kr_id=data.kr_id,
        year=data.year,
        period_type=data.period_type,
        period_value=data.period_value,
        confidence=data.confidence,
        commentary=data.commentary,
        blockers=data.blockers,
        next_actions=data.next_actions,
        created_by_id=current_user.id,
    )
    return CheckInResponse.model_validate(checkin)
