"""
OKR catalog endpoints.

Read-only views of the metric catalog, the objectives and KRs, resolved
targets and initiatives.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.okr import (
    MetricDefinitionResponse, MetricListResponse,
    KeyResultResponse, KeyResultListResponse,
    ObjectiveResponse, ObjectiveListResponse,
    TargetsResponse, InitiativeResponse, InitiativeListResponse,
)
from app.services.metric_catalog import MetricCatalog
from app.services.okr_dashboard import DashboardAggregator
from app.services.okr_registry import OKRRegistry, KeyResultDef
from app.api.v1.okr.deps import get_catalog, get_registry, get_aggregator

router = APIRouter()


def build_kr_response(kr: KeyResultDef, catalog: MetricCatalog) -> KeyResultResponse:
    definition = catalog.require(kr.metric_key)
    return KeyResultResponse(
        id=kr.id,
        objective_id=kr.objective_id,
        title=kr.title,
        metric_key=kr.metric_key,
        owner=kr.owner,
        unit=definition.unit,
        direction=definition.direction,
        targets=dict(kr.targets),
    )


@router.get("/metrics", response_model=MetricListResponse)
async def list_metrics(
    category: Optional[str] = Query(None, description="Filter by category"),
    catalog: MetricCatalog = Depends(get_catalog),
    current_user: User = Depends(get_current_user)
):
    """List catalog metrics in display order."""
    definitions = catalog.by_category(category) if category else list(catalog)
    items = [
        MetricDefinitionResponse(
            metric_key=d.metric_key,
            title=d.title,
            unit=d.unit,
            direction=d.direction,
            period_type=d.period_type,
            category=d.category,
            description=d.description,
            is_derived=d.is_derived,
            formula=d.formula,
            dimension_key=d.dimension_key,
            dimension_value=d.dimension_value,
        )
        for d in definitions
    ]
    return MetricListResponse(items=items, total=len(items))


@router.get("/objectives", response_model=ObjectiveListResponse)
async def list_objectives(
    catalog: MetricCatalog = Depends(get_catalog),
    registry: OKRRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user)
):
    """List objectives with their key results."""
    items = [
        ObjectiveResponse(
            id=objective.id,
            title=objective.title,
            description=objective.description,
            owner=objective.owner,
            key_results=[build_kr_response(kr, catalog) for kr in objective.key_results],
        )
        for objective in registry.objectives
    ]
    return ObjectiveListResponse(items=items, total=len(items))


@router.get("/krs", response_model=KeyResultListResponse)
async def list_key_results(
    objective_id: Optional[str] = Query(None, alias="objectiveId"),
    catalog: MetricCatalog = Depends(get_catalog),
    registry: OKRRegistry = Depends(get_registry),
    current_user: User = Depends(get_current_user)
):
    """List key results, optionally for one objective."""
    krs = registry.key_results
    if objective_id:
        krs = [kr for kr in krs if kr.objective_id == objective_id]
    items = [build_kr_response(kr, catalog) for kr in krs]
    return KeyResultListResponse(items=items, total=len(items))


@router.get("/targets", response_model=TargetsResponse)
async def get_targets(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    aggregator: DashboardAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """Resolved Q1..Q4 and FY targets per key result."""
    return await aggregator.get_targets(year)


@router.get("/initiatives", response_model=InitiativeListResponse)
async def list_initiatives(
    objective_id: Optional[str] = Query(None, alias="objectiveId"),
    aggregator: DashboardAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """List initiatives, optionally for one objective."""
    initiatives = await aggregator.store.fetch_initiatives(objective_id)
    items = [InitiativeResponse.model_validate(i) for i in initiatives]
    return InitiativeListResponse(items=items, total=len(items))
