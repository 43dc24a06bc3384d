"""Notification preference router for the signed-in user."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db_session
from ..notifications.preferences import (
    DeliveryTestRequest,
    DeliveryTestResult,
    NotificationPreferenceService,
    PreferencesResponse,
    PreferencesUpdate,
)
from ..security.auth import TenantContext, require_role

router = APIRouter(prefix="/api/notification-preferences", tags=["notifications"])

SessionDep = Annotated[Session, Depends(get_db_session)]
ViewerDep = Annotated[TenantContext, Depends(require_role("viewer"))]


@contextmanager
def _service_context(
    session: Session, context: TenantContext
) -> Iterator[NotificationPreferenceService]:
    try:
        yield NotificationPreferenceService(session, context.tenant_id, context.user_id)
    except Exception:
        session.rollback()
        raise


@router.get("", response_model=PreferencesResponse)
def get_preferences(context: ViewerDep, session: SessionDep) -> PreferencesResponse:
    with _service_context(session, context) as svc:
        return PreferencesResponse(preferences=svc.get())


@router.post("", response_model=PreferencesResponse)
def update_preferences(
    payload: PreferencesUpdate, context: ViewerDep, session: SessionDep
) -> PreferencesResponse:
    with _service_context(session, context) as svc:
        return PreferencesResponse(preferences=svc.update(payload))


@router.post("/reset", response_model=PreferencesResponse)
def reset_preferences(context: ViewerDep, session: SessionDep) -> PreferencesResponse:
    with _service_context(session, context) as svc:
        return PreferencesResponse(
            preferences=svc.reset(), message="Preferences reset to defaults"
        )


@router.post("/test", response_model=DeliveryTestResult)
def test_delivery(
    payload: DeliveryTestRequest, context: ViewerDep, session: SessionDep
) -> DeliveryTestResult:
    """Report whether a notification would be delivered right now."""

    with _service_context(session, context) as svc:
        return svc.test_delivery(payload)
