"""
Initiative model for the OKR module.

Initiatives are projects or workstreams tagged to an Objective and to zero or
more Key Results. They are tracked for status and coverage but never enter the
numeric rollup.
"""
from enum import Enum
from datetime import date
from typing import Optional
from sqlalchemy import String, Text, Date, Integer, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class InitiativeStatus(str, Enum):
    """Initiative lifecycle status."""
    BACKLOG = "backlog"
    DOING = "doing"
    DONE = "done"
    BLOCKED = "blocked"


# Statuses that count toward KR coverage
ACTIVE_INITIATIVE_STATUSES = (
    InitiativeStatus.BACKLOG,
    InitiativeStatus.DOING,
    InitiativeStatus.BLOCKED,
)


class Initiative(BaseModel):
    """
    Initiative model.

    `kr_ids` holds the ids of the Key Results this initiative is expected to move.
    """
    __tablename__ = "okr_initiatives"

    objective_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    kr_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[InitiativeStatus] = mapped_column(
        SQLEnum(
            InitiativeStatus,
            name="initiativestatus",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x]
        ),
        default=InitiativeStatus.BACKLOG,
        nullable=False
    )
    owner: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    quarter: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)  # Q1..Q4
    business_unit: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Owner's confidence of delivery, 0-100
    confidence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    next_milestone: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_INITIATIVE_STATUSES

    def __repr__(self) -> str:
        return f"<Initiative {self.title} ({self.status.value})>"
