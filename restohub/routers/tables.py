"""Floor view router."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db_session
from ..reservations.repository import SqlAlchemyBookingRepository
from ..security.auth import TenantContext, require_role
from ..tables import TableList, TableService

router = APIRouter(prefix="/api", tags=["tables"])


@router.get("/list-tables", response_model=TableList)
def list_tables(
    context: Annotated[TenantContext, Depends(require_role("viewer"))],
    session: Annotated[Session, Depends(get_db_session)],
) -> TableList:
    repo = SqlAlchemyBookingRepository(session, context.tenant_id)
    return TableService(repo).list_tables()
