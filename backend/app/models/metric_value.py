"""
Monthly target and actual points.

Both tables share one shape: (year, month, metric_key, dimension_key?,
dimension_value?, value). Rows are written by ingestion jobs outside this
service and are read-only here. A month with no actual row is unknown, not zero.
"""
from typing import Optional
from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, declared_attr
from app.models.base import BaseModel


class MonthlyPointMixin:
    """Columns shared by the monthly target and actual tables."""
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    metric_key: Mapped[str] = mapped_column(String(100), nullable=False)

    # NULL dimension = company-wide figure
    dimension_key: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    dimension_value: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    value: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)

    @declared_attr.directive
    def __table_args__(cls):
        return (
            UniqueConstraint(
                "year", "month", "metric_key", "dimension_key", "dimension_value",
                name=f"uq_{cls.__tablename__}_point"
            ),
            CheckConstraint("month >= 1 AND month <= 12", name="month_range"),
            Index(f"ix_{cls.__tablename__}_metric_period", "metric_key", "year", "month"),
        )

    @property
    def month_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class MetricTargetMonthly(MonthlyPointMixin, BaseModel):
    """Plan value for one metric in one calendar month."""
    __tablename__ = "metric_targets_monthly"

    def __repr__(self) -> str:
        return f"<MetricTargetMonthly {self.metric_key} {self.month_key}: {self.value}>"


class MetricActualMonthly(MonthlyPointMixin, BaseModel):
    """Realized value for one metric in one calendar month."""
    __tablename__ = "metric_actuals_monthly"

    def __repr__(self) -> str:
        return f"<MetricActualMonthly {self.metric_key} {self.month_key}: {self.value}>"
