"""
Target/Actual store adapter.

Read-only access to the monthly target and actual tables, the metrics registry
table and initiatives. Every read is a single bulk query on the request's
session; SQLAlchemy failures are logged and re-raised as StoreUnavailableError.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StoreUnavailableError
from app.models.initiative import Initiative
from app.models.metric import MetricDefinitionRecord
from app.models.metric_value import MetricTargetMonthly, MetricActualMonthly
from app.services.metric_catalog import Dimension
from app.services.periods import month_key, parse_month_key

logger = logging.getLogger(__name__)


class SeriesIndex:
    """Monthly values grouped by (metric_key, dimension)."""

    def __init__(self):
        self._series: Dict[Tuple[str, Dimension], Dict[str, float]] = defaultdict(dict)

    def add(self, metric_key: str, dimension: Dimension, month: str, value) -> None:
        self._series[(metric_key, dimension)][month] = float(value)

    def series(self, metric_key: str, dimension: Dimension = None) -> Dict[str, float]:
        """Month-keyed values; months without a row are absent."""
        return dict(self._series.get((metric_key, dimension), {}))

    def has_series(self, metric_key: str, dimension: Dimension = None) -> bool:
        return bool(self._series.get((metric_key, dimension)))

    def metric_keys(self) -> List[str]:
        return sorted({key for key, _ in self._series})

    def __len__(self) -> int:
        return sum(len(values) for values in self._series.values())

    @classmethod
    def from_rows(cls, rows: Iterable) -> "SeriesIndex":
        index = cls()
        for row in rows:
            dimension = None
            if row.dimension_key is not None and row.dimension_value is not None:
                dimension = (row.dimension_key, row.dimension_value)
            index.add(row.metric_key, dimension, month_key(row.year, row.month), row.value)
        return index


class TargetActualStore:
    """Bulk reads for one request. Holds no state beyond the session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _all(self, statement, what: str) -> list:
        try:
            result = await self.db.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.exception(f"Failed to read {what}")
            raise StoreUnavailableError(f"Failed to read {what}: {e.__class__.__name__}") from e

    async def _fetch_points(
        self,
        model: Type,
        months: Sequence[str],
        metric_keys: Optional[Sequence[str]] = None,
    ) -> SeriesIndex:
        if not months:
            return SeriesIndex()
        ordinals = [year * 100 + month for year, month in (parse_month_key(m) for m in months)]
        statement = select(model).where((model.year * 100 + model.month).in_(ordinals))
        if metric_keys is not None:
            statement = statement.where(model.metric_key.in_(list(metric_keys)))
        rows = await self._all(statement, model.__tablename__)
        return SeriesIndex.from_rows(rows)

    async def fetch_targets(
        self,
        months: Sequence[str],
        metric_keys: Optional[Sequence[str]] = None,
    ) -> SeriesIndex:
        return await self._fetch_points(MetricTargetMonthly, months, metric_keys)

    async def fetch_actuals(
        self,
        months: Sequence[str],
        metric_keys: Optional[Sequence[str]] = None,
    ) -> SeriesIndex:
        return await self._fetch_points(MetricActualMonthly, months, metric_keys)

    async def fetch_metric_definitions(self) -> List[MetricDefinitionRecord]:
        statement = select(MetricDefinitionRecord).order_by(
            MetricDefinitionRecord.sort_order,
            MetricDefinitionRecord.metric_key
        )
        return await self._all(statement, "metric definitions")

    async def fetch_initiatives(self, objective_id: Optional[str] = None) -> List[Initiative]:
        statement = select(Initiative).order_by(Initiative.objective_id, Initiative.title)
        if objective_id:
            statement = statement.where(Initiative.objective_id == objective_id)
        return await self._all(statement, "initiatives")
