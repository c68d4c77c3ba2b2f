"""
KR check-in ledger.

Append-only: there is no update or delete. The current state of a KR is its
most recent check-in for the year.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.errors import ValidationError, StoreUnavailableError
from app.models.base import utcnow
from app.models.kr_checkin import KRCheckIn, CheckInPeriodType
from app.services.okr_registry import OKRRegistry

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100


class CheckInLedger:

    def __init__(
        self,
        db: AsyncSession,
        registry: OKRRegistry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.registry = registry
        self.clock = clock

    async def append_checkin(
        self,
        kr_id: str,
        year: int,
        period_type: CheckInPeriodType,
        period_value: str,
        confidence: int,
        commentary: Optional[str] = None,
        blockers: Optional[str] = None,
        next_actions: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> KRCheckIn:
        """
        Record a new check-in.

        Raises ValidationError when confidence is outside 0-100 and
        NotFoundError for an unknown KR.
        """
        if isinstance(confidence, bool) or not isinstance(confidence, int):
            raise ValidationError("confidence", "Confidence must be an integer")
        if not MIN_CONFIDENCE <= confidence <= MAX_CONFIDENCE:
            raise ValidationError(
                "confidence",
                f"Confidence must be between {MIN_CONFIDENCE} and {MAX_CONFIDENCE}"
            )
        if not period_value or not str(period_value).strip():
            raise ValidationError("periodValue", "Period value is required")
        self.registry.require_kr(kr_id)

        checkin = KRCheckIn(
            kr_id=kr_id,
            year=year,
            period_type=CheckInPeriodType(period_type),
            period_value=str(period_value).strip(),
            confidence=confidence,
            commentary=commentary,
            blockers=blockers,
            next_actions=next_actions,
            created_by_id=created_by_id,
            created=self.clock(),
        )
        try:
            self.db.add(checkin)
            await self.db.flush()
            await self.db.refresh(checkin)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to append check-in for {kr_id}")
            raise StoreUnavailableError(f"Failed to append check-in: {e.__class__.__name__}") from e

        logger.info(f"Check-in recorded for {kr_id} ({year}/{checkin.period_value}): "
                    f"confidence {confidence}")
        return checkin

    async def get_latest_per_kr(self, year: int) -> Dict[str, KRCheckIn]:
        """Most recent check-in of each KR for the year, in one query."""
        ranked = (
            select(
                KRCheckIn,
                func.row_number().over(
                    partition_by=KRCheckIn.kr_id,
                    order_by=(KRCheckIn.created.desc(), KRCheckIn.id.desc())
                ).label("recency_rank")
            )
            .where(KRCheckIn.year == year)
            .subquery()
        )
        latest = aliased(KRCheckIn, ranked)
        statement = select(latest).where(ranked.c.recency_rank == 1)
        try:
            result = await self.db.execute(statement)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to read latest check-ins for {year}")
            raise StoreUnavailableError(f"Failed to read check-ins: {e.__class__.__name__}") from e
        return {checkin.kr_id: checkin for checkin in result.scalars().all()}

    async def list_checkins(self, kr_id: str, year: Optional[int] = None) -> List[KRCheckIn]:
        """History of one KR, newest first."""
        self.registry.require_kr(kr_id)
        statement = select(KRCheckIn).where(KRCheckIn.kr_id == kr_id)
        if year is not None:
            statement = statement.where(KRCheckIn.year == year)
        statement = statement.order_by(KRCheckIn.created.desc(), KRCheckIn.id.desc())
        try:
            result = await self.db.execute(statement)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to read check-ins for {kr_id}")
            raise StoreUnavailableError(f"Failed to read check-ins: {e.__class__.__name__}") from e
        return list(result.scalars().all())
