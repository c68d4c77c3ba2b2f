"""
Key Result check-in ledger.

Append-only: a correction is a new row. The current state of a KR is its most
recent check-in.
"""
from typing import Optional
from enum import Enum
from sqlalchemy import String, Text, Integer, ForeignKey, Index, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import AppendOnlyModel


class CheckInPeriodType(str, Enum):
    """Granularity of the period a check-in refers to."""
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class KRCheckIn(AppendOnlyModel):
    """One confidence/commentary entry against a Key Result."""
    __tablename__ = "kr_checkins"
    __table_args__ = (
        Index("ix_kr_checkins_kr_year_created", "kr_id", "year", "created"),
        CheckConstraint("confidence >= 0 AND confidence <= 100", name="confidence_range"),
    )

    kr_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[CheckInPeriodType] = mapped_column(
        SQLEnum(
            CheckInPeriodType,
            name="checkinperiodtype",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False
    )
    period_value: Mapped[str] = mapped_column(String(10), nullable=False)  # "3", "Q1", "2026"

    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    commentary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    blockers: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_actions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[Optional[str]] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<KRCheckIn {self.kr_id} {self.year}/{self.period_value}: {self.confidence}>"
