"""
OKR dashboard schemas.

Provides Pydantic models for:
- Catalog reads (metrics, objectives, KRs, targets, initiatives)
- The summary tree (objectives -> KRs -> initiatives, highlights, series)
- Quarter summary and metric series
- Cache administration
"""
from typing import Optional, List, Dict
from datetime import date, datetime
from pydantic import Field

from app.models.initiative import InitiativeStatus
from app.models.metric import MetricUnit, MetricDirection, MetricPeriodType
from app.schemas.common import CamelModel
from app.schemas.checkin import CheckInResponse
from app.services.rollup import SignalStatus


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================

class MetricDefinitionResponse(CamelModel):
    metric_key: str
    title: str
    unit: MetricUnit
    direction: MetricDirection
    period_type: MetricPeriodType
    category: Optional[str] = None
    description: Optional[str] = None
    is_derived: bool = False
    formula: Optional[str] = None
    dimension_key: Optional[str] = None
    dimension_value: Optional[str] = None


class MetricListResponse(CamelModel):
    items: List[MetricDefinitionResponse]
    total: int


class KeyResultResponse(CamelModel):
    id: str
    objective_id: str
    title: str
    metric_key: str
    owner: Optional[str] = None
    unit: MetricUnit
    direction: MetricDirection
    targets: Dict[str, float] = Field(default_factory=dict)


class KeyResultListResponse(CamelModel):
    items: List[KeyResultResponse]
    total: int


class ObjectiveResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    owner: Optional[str] = None
    key_results: List[KeyResultResponse]


class ObjectiveListResponse(CamelModel):
    items: List[ObjectiveResponse]
    total: int


class KRTargetsResponse(CamelModel):
    """Resolved Q1..Q4 and FY targets of one KR."""
    kr_id: str
    metric_key: str
    targets: Dict[str, Optional[float]]


class TargetsResponse(CamelModel):
    year: int
    items: List[KRTargetsResponse]


class InitiativeResponse(CamelModel):
    id: str
    objective_id: str
    title: str
    description: Optional[str] = None
    kr_ids: List[str] = Field(default_factory=list)
    status: InitiativeStatus
    owner: Optional[str] = None
    quarter: Optional[str] = None
    business_unit: Optional[str] = None
    due_date: Optional[date] = None
    confidence: Optional[int] = None
    next_milestone: Optional[str] = None


class InitiativeListResponse(CamelModel):
    items: List[InitiativeResponse]
    total: int


# ============================================================================
# SUMMARY TREE SCHEMAS
# ============================================================================

class KRStatusResponse(CamelModel):
    """A KR with its computed state for the requested period."""
    id: str
    title: str
    metric_key: str
    owner: Optional[str] = None
    unit: MetricUnit
    direction: MetricDirection
    current_value: Optional[float] = None
    target: Optional[float] = None
    progress: Optional[float] = None
    variance: Optional[float] = None
    variance_pct: Optional[float] = None
    status: SignalStatus
    unavailable_reason: Optional[str] = None
    initiative_ids: List[str] = Field(default_factory=list)
    latest_checkin: Optional[CheckInResponse] = None


class StatusCounts(CamelModel):
    green: int = 0
    yellow: int = 0
    red: int = 0
    gray: int = 0


class ObjectiveSummary(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    owner: Optional[str] = None
    status_counts: StatusCounts
    key_results: List[KRStatusResponse]
    initiatives: List[InitiativeResponse] = Field(default_factory=list)


class CoverageResponse(CamelModel):
    """KRs with at least one active (not done) initiative."""
    total_krs: int
    covered_krs: int
    coverage_pct: Optional[float] = None
    uncovered_kr_ids: List[str] = Field(default_factory=list)


class HighlightResponse(CamelModel):
    metric_key: str
    title: str
    unit: MetricUnit
    direction: MetricDirection
    value: Optional[float] = None
    target: Optional[float] = None
    progress: Optional[float] = None
    variance_pct: Optional[float] = None
    status: SignalStatus


class SeriesPoint(CamelModel):
    month: str
    actual: Optional[float] = None
    target: Optional[float] = None


class SummaryMeta(CamelModel):
    cache_hit: bool = False
    generated_at: datetime
    as_of: date
    fiscal_year: int
    current_quarter: str
    period: str
    months: List[str]
    business_unit: str
    unavailable_metrics: List[str] = Field(default_factory=list)


class SummaryTree(CamelModel):
    period: str
    business_unit: str
    year: int
    objectives: List[ObjectiveSummary]
    initiatives: List[InitiativeResponse]
    coverage: CoverageResponse
    highlights: List[HighlightResponse]
    series: Dict[str, List[SeriesPoint]]
    meta: SummaryMeta


# ============================================================================
# QUARTER SUMMARY / SERIES SCHEMAS
# ============================================================================

class PeriodRollup(CamelModel):
    period: str
    plan: Optional[float] = None
    actual: Optional[float] = None
    variance: Optional[float] = None
    variance_pct: Optional[float] = None
    progress: Optional[float] = None
    status: SignalStatus


class QuarterMetricSummary(CamelModel):
    metric_key: str
    title: str
    unit: MetricUnit
    direction: MetricDirection
    period_type: MetricPeriodType
    periods: List[PeriodRollup]


class QuarterSummaryMeta(CamelModel):
    cache_hit: bool = False
    generated_at: datetime
    as_of: date
    current_quarter: str


class QuarterSummaryResponse(CamelModel):
    year: int
    metrics: List[QuarterMetricSummary]
    meta: QuarterSummaryMeta


class MetricSeriesResponse(CamelModel):
    metric_key: str
    title: str
    unit: MetricUnit
    start: str
    end: str
    points: List[SeriesPoint]


# ============================================================================
# CACHE SCHEMAS
# ============================================================================

class CacheInvalidateRequest(CamelModel):
    """Flush entries whose key contains `pattern`, or everything when omitted."""
    pattern: Optional[str] = Field(None, max_length=200)


class CacheInvalidateResponse(CamelModel):
    invalidated: int
    pattern: Optional[str] = None


class CacheStatsResponse(CamelModel):
    size: int
    keys: List[str]
    hits: int
    misses: int
