"""Reservation API router."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..core.db import get_db_session
from ..notifications.email import StatusEmail, send_status_email
from ..rate_limit import RESERVATION_RATE_LIMIT, limiter
from ..reservations import schemas
from ..reservations.repository import SqlAlchemyBookingRepository
from ..reservations.service import ReservationService
from ..security.auth import TenantContext, require_role

router = APIRouter(prefix="/api", tags=["reservations"])

SessionDep = Annotated[Session, Depends(get_db_session)]
ViewerDep = Annotated[TenantContext, Depends(require_role("viewer"))]
OperatorDep = Annotated[TenantContext, Depends(require_role("operator"))]


@contextmanager
def _service_context(
    session: Session, context: TenantContext
) -> Iterator[ReservationService]:
    repo = SqlAlchemyBookingRepository(session, context.tenant_id)
    try:
        yield ReservationService(repo)
    except Exception:
        session.rollback()
        raise


@router.post(
    "/create-reservation",
    response_model=schemas.ReservationEnvelope,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(RESERVATION_RATE_LIMIT)
def create_reservation(
    request: Request,
    payload: schemas.CreateReservationRequest,
    context: OperatorDep,
    session: SessionDep,
    idempotency_key: Annotated[str | None, Header(alias="x-idempotency-key")] = None,
) -> schemas.ReservationEnvelope:
    """Create a confirmed reservation, replaying earlier results for a reused key."""

    with _service_context(session, context) as svc:
        reservation = svc.create_reservation(payload, idempotency_key)
    return schemas.ReservationEnvelope(data=reservation)


@router.post(
    "/widget-booking",
    response_model=schemas.BookingRequestResult,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(RESERVATION_RATE_LIMIT)
def widget_booking(
    request: Request,
    payload: schemas.BookingRequest,
    context: ViewerDep,
    session: SessionDep,
    idempotency_key: Annotated[str | None, Header(alias="x-idempotency-key")] = None,
) -> schemas.BookingRequestResult:
    """Submit a guest booking request from the widget; staff approve it later."""

    with _service_context(session, context) as svc:
        result = svc.request_reservation(payload, idempotency_key)
    return result


@router.post("/list-reservations", response_model=schemas.ReservationList)
def list_reservations(
    payload: schemas.ListReservationsRequest,
    context: ViewerDep,
    session: SessionDep,
) -> schemas.ReservationList:
    with _service_context(session, context) as svc:
        items = svc.list_reservations(payload.date, payload.filters)
    return schemas.ReservationList(data=items)


@router.api_route(
    "/update-reservation",
    methods=["POST", "PATCH"],
    response_model=schemas.ReservationEnvelope,
)
def update_reservation(
    payload: schemas.UpdateReservationRequest,
    context: OperatorDep,
    session: SessionDep,
) -> schemas.ReservationEnvelope:
    with _service_context(session, context) as svc:
        reservation = svc.update_reservation(payload)
    return schemas.ReservationEnvelope(data=reservation)


@router.post("/reservation-status", response_model=schemas.ReservationStatusResult)
def reservation_status(
    payload: schemas.ReservationStatusRequest,
    background_tasks: BackgroundTasks,
    context: OperatorDep,
    session: SessionDep,
) -> schemas.ReservationStatusResult:
    """Approve or decline a pending request and e-mail the guest."""

    with _service_context(session, context) as svc:
        result = svc.review_pending(payload.reservationId, payload.action)

    reservation = result.data
    if reservation.guestEmail:
        background_tasks.add_task(
            send_status_email,
            StatusEmail(
                to_email=reservation.guestEmail,
                tenant_name=context.tenant.name or "Restaurant",
                guest_name=reservation.guestName,
                booking_time=reservation.start,
                party_size=reservation.partySize,
                action=payload.action,
                confirmation_code=result.confirmationCode,
            ),
        )
    return result


@router.get("/reservations/export")
def export_reservations(
    context: ViewerDep,
    session: SessionDep,
    date: Annotated[str, Query(description="Day to export in YYYY-MM-DD format")],
) -> Response:
    """Download the reservations of one day as CSV."""

    with _service_context(session, context) as svc:
        body = svc.export_csv(date)
    return Response(
        content=body,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="reservations-{date}.csv"'
        },
    )
