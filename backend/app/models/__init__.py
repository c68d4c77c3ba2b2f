"""
SQLAlchemy models for the BizPulse OKR backend.

- Users: dashboard authentication
- Metric registry: persisted metric definitions
- Monthly points: targets and actuals per metric per month
- OKR: initiatives and the append-only KR check-in ledger
"""
# Core models
from app.models.user import User

# Metric registry and monthly points
from app.models.metric import MetricDefinitionRecord, MetricUnit, MetricDirection, MetricPeriodType
from app.models.metric_value import MetricTargetMonthly, MetricActualMonthly

# OKR module
from app.models.initiative import Initiative, InitiativeStatus, ACTIVE_INITIATIVE_STATUSES
from app.models.kr_checkin import KRCheckIn, CheckInPeriodType

__all__ = [
    # Core
    "User",
    # Metric registry
    "MetricDefinitionRecord",
    "MetricUnit",
    "MetricDirection",
    "MetricPeriodType",
    "MetricTargetMonthly",
    "MetricActualMonthly",
    # OKR
    "Initiative",
    "InitiativeStatus",
    "ACTIVE_INITIATIVE_STATUSES",
    "KRCheckIn",
    "CheckInPeriodType",
]
