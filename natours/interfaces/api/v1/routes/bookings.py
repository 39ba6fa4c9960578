from typing import Any

import stripe
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from natours.application.errors import NotFoundError
from natours.application.services.booking_service import (
    BOOKING_COLUMNS,
    bookings_query,
    create_booking,
    create_checkout_session,
    delete_booking,
    get_booking_by_id,
    handle_webhook_event,
    serialize_booking,
    update_booking,
)
from natours.application.services.query_features_service import project, query_documents
from natours.config import Settings
from natours.domain.roles import UserRole
from natours.infrastructure.db.models import Booking, User
from natours.infrastructure.db.session import get_db
from natours.infrastructure.logging import get_logger
from natours.interfaces.api.v1.dependencies.auth import get_current_user, get_settings, restrict_to
from natours.interfaces.api.v1.dependencies.query import get_query_params
from natours.interfaces.api.v1.schemas.base import document_envelope, list_envelope
from natours.interfaces.api.v1.schemas.booking import BookingCreate, BookingUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"], dependencies=[Depends(get_current_user)])
webhook_router = APIRouter(tags=["bookings"])

require_booking_manager = restrict_to(UserRole.admin, UserRole.lead_guide)


def _require_booking(db: Session, booking_id: int) -> Booking:
    booking = get_booking_by_id(db, booking_id)
    if booking is None:
        raise NotFoundError("No booking found with that ID")
    return booking


@router.get("/checkout-session/{tour_id}")
def get_checkout_session(
    tour_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    session = create_checkout_session(db, settings, tour_id=tour_id, user=current_user, base_url=str(request.base_url))
    return {"status": "success", "session": session}


@router.get("", dependencies=[Depends(require_booking_manager)])
def get_all_bookings(params: dict[str, Any] = Depends(get_query_params), db: Session = Depends(get_db)):
    result = query_documents(db, bookings_query(), params, columns=BOOKING_COLUMNS, id_column=Booking.id)
    return list_envelope([project(serialize_booking(booking), result.fields) for booking in result.items])


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_booking_manager)])
def create_booking_endpoint(payload: BookingCreate, db: Session = Depends(get_db)):
    booking = create_booking(db, payload)
    return document_envelope(serialize_booking(_require_booking(db, booking.id)))


@router.get("/{booking_id}", dependencies=[Depends(require_booking_manager)])
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    return document_envelope(serialize_booking(_require_booking(db, booking_id)))


@router.patch("/{booking_id}", dependencies=[Depends(require_booking_manager)])
def update_booking_endpoint(booking_id: int, payload: BookingUpdate, db: Session = Depends(get_db)):
    return document_envelope(serialize_booking(update_booking(db, _require_booking(db, booking_id), payload)))


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_booking_manager)],
)
def delete_booking_endpoint(booking_id: int, db: Session = Depends(get_db)):
    delete_booking(db, _require_booking(db, booking_id))


async def get_raw_body(request: Request) -> bytes:
    return await request.body()


@webhook_router.post("/webhook-checkout")
def webhook_checkout(
    payload: bytes = Depends(get_raw_body),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        handle_webhook_event(db, settings, payload=payload, signature=stripe_signature)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("webhook_rejected", error=str(exc))
        return PlainTextResponse(f"Webhook error: {exc}", status_code=status.HTTP_400_BAD_REQUEST)
    return {"received": True}
