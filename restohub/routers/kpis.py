"""Dashboard KPI router."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..core.db import get_db_session
from ..kpis import KpiRequest, KpiResponse, KpiService
from ..reservations.repository import SqlAlchemyBookingRepository
from ..security.auth import TenantContext, require_role

router = APIRouter(prefix="/api", tags=["kpis"])

SessionDep = Annotated[Session, Depends(get_db_session)]
ViewerDep = Annotated[TenantContext, Depends(require_role("viewer"))]


def _service(session: Session, context: TenantContext) -> KpiService:
    return KpiService(SqlAlchemyBookingRepository(session, context.tenant_id))


@router.get("/get-kpis", response_model=KpiResponse)
def get_kpis(
    context: ViewerDep,
    session: SessionDep,
    date: Annotated[str | None, Query()] = None,
) -> KpiResponse:
    """KPI cards for ``date`` (UTC, defaults to today)."""

    return _service(session, context).get_kpis(date)


@router.post("/get-kpis", response_model=KpiResponse)
def post_kpis(
    context: ViewerDep,
    session: SessionDep,
    payload: Annotated[KpiRequest | None, Body()] = None,
) -> KpiResponse:
    return _service(session, context).get_kpis(payload.date if payload else None)
