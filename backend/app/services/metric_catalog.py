"""
Metric catalog service.

The catalog is the closed set of metrics the OKR engine knows about. It is
built once at startup, from the metric_definitions table when that table has
rows, otherwise from the built-in business-plan catalog below. Every KR in the
OKR registry must reference a key in this catalog.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple, List, Dict

from app.core.errors import CatalogError, NotFoundError
from app.models.metric import MetricUnit, MetricDirection, MetricPeriodType

logger = logging.getLogger(__name__)

Dimension = Optional[Tuple[str, str]]

BUSINESS_UNIT_DIMENSION = "business_unit"
ALL_BUSINESS_UNITS = "all"

_FORMULA_TOKEN = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*|[-+*/])")


@dataclass(frozen=True)
class MetricDefinition:
    """One catalog entry."""
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
    sort_order: int = 0

    @property
    def default_dimension(self) -> Dimension:
        if self.dimension_key and self.dimension_value:
            return (self.dimension_key, self.dimension_value)
        return None

    @property
    def formula_tokens(self) -> List[str]:
        return parse_formula(self.formula) if self.formula else []

    @property
    def components(self) -> List[str]:
        """Metric keys a derived metric is computed from."""
        return [t for t in self.formula_tokens if t not in "+-*/"]


def parse_formula(formula: str) -> List[str]:
    """
    Tokenize a derived-metric formula.

    Formulas are metric keys joined by + - * /, evaluated left to right,
    e.g. "revenue_net / headcount_total".
    """
    tokens = []
    position = 0
    formula = formula.strip()
    while position < len(formula):
        match = _FORMULA_TOKEN.match(formula, position)
        if not match:
            raise CatalogError(f"Invalid formula {formula!r} at position {position}")
        tokens.append(match.group(1))
        position = match.end()

    if not tokens or len(tokens) % 2 == 0:
        raise CatalogError(f"Invalid formula {formula!r}")
    for index, token in enumerate(tokens):
        is_operator = token in "+-*/"
        if is_operator != (index % 2 == 1):
            raise CatalogError(f"Invalid formula {formula!r}")
    return tokens


def effective_dimension(definition: MetricDefinition, business_unit: str) -> Dimension:
    """Dimension to read for a metric under a business-unit filter."""
    if business_unit == ALL_BUSINESS_UNITS:
        return definition.default_dimension
    return (BUSINESS_UNIT_DIMENSION, business_unit)


class MetricCatalog:
    """Immutable, validated lookup of metric definitions by key."""

    def __init__(self, definitions: Iterable[MetricDefinition]):
        self._definitions: Dict[str, MetricDefinition] = {}
        for definition in definitions:
            if definition.metric_key in self._definitions:
                raise CatalogError(f"Duplicate metric key: {definition.metric_key}")
            self._definitions[definition.metric_key] = definition
        self._validate()

    def _validate(self) -> None:
        for definition in self._definitions.values():
            if definition.is_derived and not definition.formula:
                raise CatalogError(f"Derived metric {definition.metric_key} has no formula")
            for component in definition.components:
                if component not in self._definitions:
                    raise CatalogError(
                        f"Metric {definition.metric_key} references unknown metric {component}"
                    )
                if component == definition.metric_key:
                    raise CatalogError(f"Metric {definition.metric_key} references itself")
        self._check_cycles()

    def _check_cycles(self) -> None:
        done = set()
        for root in self._definitions:
            if root in done:
                continue
            path = [root]
            stack = [iter(self._definitions[root].components)]
            while stack:
                component = next(stack[-1], None)
                if component is None:
                    done.add(path.pop())
                    stack.pop()
                    continue
                if component in path:
                    cycle = " -> ".join(path[path.index(component):] + [component])
                    raise CatalogError(f"Derived metrics form a cycle: {cycle}")
                if component not in done:
                    path.append(component)
                    stack.append(iter(self._definitions[component].components))

    def get(self, metric_key: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_key)

    def require(self, metric_key: str) -> MetricDefinition:
        definition = self._definitions.get(metric_key)
        if definition is None:
            raise NotFoundError(f"Unknown metric: {metric_key}")
        return definition

    def keys(self) -> List[str]:
        return list(self._definitions)

    def by_category(self, category: str) -> List[MetricDefinition]:
        return [d for d in self if d.category == category]

    def __contains__(self, metric_key: str) -> bool:
        return metric_key in self._definitions

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(sorted(self._definitions.values(), key=lambda d: (d.sort_order, d.metric_key)))

    def __len__(self) -> int:
        return len(self._definitions)

    @classmethod
    def from_records(cls, records) -> "MetricCatalog":
        """Build from MetricDefinitionRecord rows (inactive rows are skipped)."""
        definitions = []
        for record in records:
            if not record.is_active:
                continue
            definitions.append(MetricDefinition(
                metric_key=record.metric_key,
                title=record.title,
                unit=MetricUnit(record.unit),
                direction=MetricDirection(record.direction),
                period_type=MetricPeriodType(record.period_type),
                category=record.category,
                description=record.description,
                is_derived=record.is_derived,
                formula=record.formula,
                dimension_key=record.dimension_key,
                dimension_value=record.dimension_value,
                sort_order=record.sort_order,
            ))
        return cls(definitions)


# ============================================================================
# BUILT-IN BUSINESS PLAN CATALOG
# ============================================================================

_C = MetricUnit.CURRENCY
_P = MetricUnit.PERCENTAGE
_N = MetricUnit.COUNT
_UP = MetricDirection.HIGHER_IS_BETTER
_DOWN = MetricDirection.LOWER_IS_BETTER
_BAND = MetricDirection.TARGET_BAND
_FLOW = MetricPeriodType.FLOW
_STOCK = MetricPeriodType.STOCK
_AVG = MetricPeriodType.AVERAGE

BUILTIN_METRICS: Tuple[MetricDefinition, ...] = (
    # Revenue
    MetricDefinition("mrr_active", "Active MRR", _C, _UP, _FLOW, "revenue",
                     "Recurring revenue billed on active contracts", sort_order=10),
    MetricDefinition("revenue_billable_total", "Billable revenue", _C, _UP, _FLOW, "revenue",
                     "Recurring plus one-off revenue billed", sort_order=11),
    MetricDefinition("revenue_net", "Net revenue", _C, _UP, _FLOW, "revenue",
                     "Billable revenue net of taxes", sort_order=12),
    # Sales
    MetricDefinition("sales_new_mrr", "New MRR sold", _C, _UP, _FLOW, "sales", sort_order=20),
    MetricDefinition("sales_expansion_mrr", "Expansion MRR sold", _C, _UP, _FLOW, "sales",
                     sort_order=21),
    MetricDefinition("sales_oneoff", "One-off projects sold", _C, _UP, _FLOW, "sales",
                     sort_order=22),
    # Retention
    MetricDefinition("churn_mrr", "Churned MRR", _C, _DOWN, _FLOW, "retention", sort_order=30),
    MetricDefinition("gross_mrr_churn_pct", "Gross MRR churn", _P, _DOWN, _AVG, "retention",
                     sort_order=31),
    MetricDefinition("net_mrr_churn_pct", "Net MRR churn", _P, _DOWN, _AVG, "retention",
                     "Churned MRR minus expansion, over opening MRR", sort_order=32),
    MetricDefinition("bad_debt_pct", "Delinquency", _P, _DOWN, _AVG, "retention",
                     "Overdue receivables as a share of billing", sort_order=33),
    MetricDefinition("nps", "NPS", _N, _UP, _AVG, "retention", sort_order=34),
    # Finance
    MetricDefinition("ebitda", "EBITDA", _C, _UP, _FLOW, "finance", sort_order=40),
    MetricDefinition("cash_generation", "Cash generation", _C, _UP, _FLOW, "finance",
                     sort_order=41),
    MetricDefinition("cash_balance_end", "Cash balance", _C, _UP, _STOCK, "finance",
                     "Cash at the end of the month", sort_order=42),
    # Operations
    MetricDefinition("clients_active", "Active clients", _N, _UP, _STOCK, "operations",
                     sort_order=50),
    MetricDefinition("headcount_total", "Headcount", _N, _BAND, _STOCK, "operations",
                     "People on payroll at month end, planned within a band", sort_order=51),
    MetricDefinition("revenue_per_head", "Net revenue per head", _C, _UP, _AVG, "operations",
                     is_derived=True, formula="revenue_net / headcount_total", sort_order=52),
    MetricDefinition("on_time_delivery_pct", "On-time deliveries", _P, _UP, _AVG, "operations",
                     sort_order=53),
    # Business units
    MetricDefinition("tech_projects_delivered_value", "Tech projects delivered", _C, _UP, _FLOW,
                     "tech", dimension_key=BUSINESS_UNIT_DIMENSION, dimension_value="tech",
                     sort_order=60),
    MetricDefinition("tech_freelancers_pct", "Freelancer share of tech cost", _P, _DOWN, _AVG,
                     "tech", dimension_key=BUSINESS_UNIT_DIMENSION, dimension_value="tech",
                     sort_order=61),
    MetricDefinition("oh_net_revenue", "TurboOH net revenue", _C, _UP, _FLOW, "turbooh",
                     dimension_key=BUSINESS_UNIT_DIMENSION, dimension_value="turbooh",
                     sort_order=70),
    MetricDefinition("oh_result", "TurboOH result", _C, _UP, _FLOW, "turbooh",
                     dimension_key=BUSINESS_UNIT_DIMENSION, dimension_value="turbooh",
                     sort_order=71),
)


def build_default_catalog() -> MetricCatalog:
    return MetricCatalog(BUILTIN_METRICS)


async def load_catalog(store, from_db: bool = True) -> MetricCatalog:
    """
    Build the catalog for this process.

    `store` is a TargetActualStore. The persisted registry wins when it has
    active rows; an empty table falls back to the built-in catalog.
    """
    if from_db:
        records = await store.fetch_metric_definitions()
        if any(r.is_active for r in records):
            catalog = MetricCatalog.from_records(records)
            logger.info(f"Loaded metric catalog from database: {len(catalog)} metrics")
            return catalog
    catalog = build_default_catalog()
    logger.info(f"Loaded built-in metric catalog: {len(catalog)} metrics")
    return catalog
