"""
OKR registry: the 2026 Objectives and Key Results.

Objectives and KRs are configuration, not data. Each KR points at a catalog
metric and carries static targets per quarter and for the full year, used when
the monthly targets table does not cover the requested period.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Iterable

from app.core.errors import CatalogError, NotFoundError
from app.services.metric_catalog import MetricCatalog
from app.services.periods import STATIC_TARGET_KEYS


@dataclass(frozen=True)
class KeyResultDef:
    id: str
    objective_id: str
    title: str
    metric_key: str
    targets: Dict[str, float] = field(default_factory=dict)
    owner: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ObjectiveDef:
    id: str
    title: str
    description: Optional[str] = None
    owner: Optional[str] = None
    key_results: Tuple[KeyResultDef, ...] = ()


def _quarters(q1, q2, q3, q4, fy) -> Dict[str, float]:
    return {"Q1": q1, "Q2": q2, "Q3": q3, "Q4": q4, "FY": fy}


def _flat(value) -> Dict[str, float]:
    return {key: value for key in STATIC_TARGET_KEYS}


OBJECTIVES_2026: Tuple[ObjectiveDef, ...] = (
    ObjectiveDef(
        id="O1",
        title="Grow bigger: scale recurring and project revenue",
        owner="CEO",
        key_results=(
            KeyResultDef("O1-KR1", "O1", "Reach R$ 2.1M active MRR by Q4", "mrr_active",
                         _quarters(1_340_000, 1_611_315, 1_871_384, 2_122_127, 6_944_826),
                         owner="Revenue"),
            KeyResultDef("O1-KR2", "O1", "Sell R$ 3M in new MRR", "sales_new_mrr",
                         _quarters(645_000, 720_000, 810_000, 900_000, 3_075_000),
                         owner="Sales"),
            KeyResultDef("O1-KR3", "O1", "Sell R$ 4.2M in one-off projects", "sales_oneoff",
                         _quarters(810_000, 975_000, 1_140_000, 1_305_000, 4_230_000),
                         owner="Sales"),
            KeyResultDef("O1-KR4", "O1", "Deliver R$ 2.4M in tech projects",
                         "tech_projects_delivered_value",
                         _quarters(450_000, 600_000, 660_000, 660_000, 2_370_000),
                         owner="Tech"),
            KeyResultDef("O1-KR5", "O1", "Take TurboOH past R$ 1.4M net revenue", "oh_net_revenue",
                         _quarters(86_400, 259_200, 432_000, 648_000, 1_425_600),
                         owner="TurboOH"),
        ),
    ),
    ObjectiveDef(
        id="O2",
        title="Get better: retention, quality and efficiency",
        owner="COO",
        key_results=(
            KeyResultDef("O2-KR1", "O2", "Keep delinquency under 6%", "bad_debt_pct",
                         _flat(6.0), owner="Finance"),
            KeyResultDef("O2-KR2", "O2", "Keep net MRR churn under 2%", "net_mrr_churn_pct",
                         _flat(2.0), owner="Customer Success"),
            KeyResultDef("O2-KR3", "O2", "NPS of 70 or more", "nps",
                         _flat(70.0), owner="Customer Success"),
            KeyResultDef("O2-KR4", "O2", "R$ 16k net revenue per head", "revenue_per_head",
                         _flat(16_000.0), owner="People"),
            KeyResultDef("O2-KR5", "O2", "90% of deliveries on time", "on_time_delivery_pct",
                         _flat(90.0), owner="Tech"),
            KeyResultDef("O2-KR6", "O2", "Freelancers under 20% of tech cost",
                         "tech_freelancers_pct", _flat(20.0), owner="Tech"),
        ),
    ),
    ObjectiveDef(
        id="O3",
        title="Deliver the board plan: profit and cash",
        owner="CFO",
        key_results=(
            KeyResultDef("O3-KR1", "O3", "Deliver R$ 5.3M EBITDA", "ebitda",
                         _quarters(746_055, 1_152_814, 1_398_628, 1_972_271, 5_269_768),
                         owner="Finance"),
            KeyResultDef("O3-KR2", "O3", "Generate R$ 3.1M in cash", "cash_generation",
                         _quarters(394_897, 663_357, 825_594, 1_204_199, 3_088_047),
                         owner="Finance"),
            KeyResultDef("O3-KR3", "O3", "Close the year with R$ 3.7M in cash", "cash_balance_end",
                         _quarters(1_044_897, 1_708_254, 2_533_848, 3_738_047, 3_738_047),
                         owner="Finance"),
            KeyResultDef("O3-KR4", "O3", "Reach 511 active clients", "clients_active",
                         _quarters(346, 401, 456, 511, 511), owner="Revenue"),
            KeyResultDef("O3-KR5", "O3", "Keep headcount on plan", "headcount_total",
                         _quarters(138, 151, 166, 179, 179), owner="People"),
            KeyResultDef("O3-KR6", "O3", "Deliver R$ 21.4M net revenue", "revenue_net",
                         _quarters(3_848_208, 4_840_500, 5_833_129, 6_895_418, 21_417_255),
                         owner="Finance"),
        ),
    ),
)


class OKRRegistry:
    """Lookup over the configured Objectives and KRs."""

    def __init__(self, objectives: Iterable[ObjectiveDef]):
        self.objectives: Tuple[ObjectiveDef, ...] = tuple(objectives)
        self._krs: Dict[str, KeyResultDef] = {}
        for objective in self.objectives:
            for kr in objective.key_results:
                if kr.id in self._krs:
                    raise CatalogError(f"Duplicate KR id: {kr.id}")
                if kr.objective_id != objective.id:
                    raise CatalogError(f"KR {kr.id} is listed under {objective.id} "
                                       f"but declares {kr.objective_id}")
                self._krs[kr.id] = kr

    @property
    def key_results(self) -> List[KeyResultDef]:
        return list(self._krs.values())

    def get_kr(self, kr_id: str) -> Optional[KeyResultDef]:
        return self._krs.get(kr_id)

    def require_kr(self, kr_id: str) -> KeyResultDef:
        kr = self._krs.get(kr_id)
        if kr is None:
            raise NotFoundError(f"Unknown key result: {kr_id}")
        return kr

    def kr_for_metric(self, metric_key: str) -> Optional[KeyResultDef]:
        """First KR tracking a metric, in registry order."""
        for kr in self._krs.values():
            if kr.metric_key == metric_key:
                return kr
        return None

    def metric_keys(self) -> List[str]:
        keys = []
        for kr in self._krs.values():
            if kr.metric_key not in keys:
                keys.append(kr.metric_key)
        return keys

    def validate(self, catalog: MetricCatalog) -> None:
        """Every KR must reference a catalog metric and use known target keys."""
        for kr in self._krs.values():
            if kr.metric_key not in catalog:
                raise CatalogError(f"KR {kr.id} references unknown metric {kr.metric_key}")
            unknown = set(kr.targets) - set(STATIC_TARGET_KEYS)
            if unknown:
                raise CatalogError(f"KR {kr.id} has targets for unknown periods: {sorted(unknown)}")


def build_default_registry(catalog: MetricCatalog) -> OKRRegistry:
    registry = OKRRegistry(OBJECTIVES_2026)
    registry.validate(catalog)
    return registry
