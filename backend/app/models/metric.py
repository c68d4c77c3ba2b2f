"""
Metric definition model (the metrics registry table).

Each row describes one catalog metric: how it is displayed (unit), which way is
good (direction) and how monthly values roll up into a period (period type).
The in-memory catalog is built from these rows at startup when the table is
populated, otherwise from the built-in business-plan catalog.
"""
from typing import Optional
from enum import Enum
from sqlalchemy import String, Text, Boolean, Integer, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import BaseModel


class MetricUnit(str, Enum):
    """Display unit of a metric value."""
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    COUNT = "count"


class MetricDirection(str, Enum):
    """Which side of the target is favorable."""
    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"
    TARGET_BAND = "target_band"


class MetricPeriodType(str, Enum):
    """How monthly values combine into a period value."""
    FLOW = "flow"        # summed across the months of the period
    STOCK = "stock"      # read at the last month with data
    AVERAGE = "average"  # mean of the months with data (ratios, percentages)


def _enum_column(enum_cls, name: str):
    return SQLEnum(
        enum_cls,
        name=name,
        create_constraint=True,
        values_callable=lambda x: [e.value for e in x]
    )


class MetricDefinitionRecord(BaseModel):
    """Persisted metric definition."""
    __tablename__ = "metric_definitions"

    metric_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    unit: Mapped[MetricUnit] = mapped_column(
        _enum_column(MetricUnit, "metricunit"),
        default=MetricUnit.CURRENCY,
        nullable=False
    )
    direction: Mapped[MetricDirection] = mapped_column(
        _enum_column(MetricDirection, "metricdirection"),
        default=MetricDirection.HIGHER_IS_BETTER,
        nullable=False
    )
    period_type: Mapped[MetricPeriodType] = mapped_column(
        _enum_column(MetricPeriodType, "metricperiodtype"),
        default=MetricPeriodType.FLOW,
        nullable=False
    )

    # Derived metrics are computed from other metrics, e.g. "revenue_net / headcount_total"
    is_derived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    formula: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Per-business-unit variants of the same metric
    dimension_key: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    dimension_value: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<MetricDefinitionRecord {self.metric_key} ({self.period_type.value})>"
