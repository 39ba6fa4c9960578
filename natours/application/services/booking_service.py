from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import Select

from natours.application.errors import NotFoundError
from natours.application.services.tour_service import get_tour_by_id
from natours.config import Settings
from natours.infrastructure.db.models import Booking, Tour, User
from natours.infrastructure.logging import get_logger
from natours.infrastructure.payments import stripe_client
from natours.interfaces.api.v1.schemas.booking import BookingCreate, BookingUpdate

logger = get_logger(__name__)

BOOKING_COLUMNS = {
    "price": Booking.price,
    "paid": Booking.paid,
    "tour": Booking.tour_id,
    "user": Booking.user_id,
    "createdAt": Booking.created_at,
}

CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"
TOUR_IMAGE_PATH = "img/tours"


def bookings_query() -> Select:
    return select(Booking).options(selectinload(Booking.tour), selectinload(Booking.user))


def get_booking_by_id(db: Session, booking_id: int) -> Booking | None:
    return db.execute(bookings_query().where(Booking.id == booking_id)).scalar_one_or_none()


def create_booking(db: Session, payload: BookingCreate) -> Booking:
    if db.get(Tour, payload.tour) is None:
        raise NotFoundError("No tour found with that ID")
    if db.get(User, payload.user) is None:
        raise NotFoundError("No user found with that ID")
    booking = Booking(tour_id=payload.tour, user_id=payload.user, price=payload.price, paid=payload.paid)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def update_booking(db: Session, booking: Booking, payload: BookingUpdate) -> Booking:
    if payload.price is not None:
        booking.price = payload.price
    if payload.paid is not None:
        booking.paid = payload.paid
    db.commit()
    db.refresh(booking)
    return booking


def delete_booking(db: Session, booking: Booking) -> None:
    db.delete(booking)
    db.commit()


def get_booked_tours(db: Session, user: User) -> list[Tour]:
    tour_ids = select(Booking.tour_id).where(Booking.user_id == user.id)
    return list(
        db.execute(select(Tour).where(Tour.id.in_(tour_ids), Tour.secret_tour.is_(False)).order_by(Tour.id))
        .scalars()
        .all()
    )


def create_checkout_session(db: Session, settings: Settings, *, tour_id: int, user: User, base_url: str) -> dict[str, Any]:
    tour = get_tour_by_id(db, tour_id)
    if tour is None:
        raise NotFoundError("No tour found with that ID")
    base_url = base_url.rstrip("/")
    session = stripe_client.create_checkout_session(
        settings,
        tour_id=tour.id,
        tour_name=tour.name,
        tour_summary=tour.summary,
        image_urls=[f"{base_url}/{TOUR_IMAGE_PATH}/{tour.image_cover}"],
        unit_amount_cents=int(round(tour.price * 100)),
        customer_email=user.email,
        success_url=f"{base_url}/my-tours?alert=booking",
        cancel_url=f"{base_url}/tour/{tour.slug}",
    )
    logger.info("checkout_session_created", tour_id=tour.id, user_id=user.id, session_id=session["id"])
    return {"id": session["id"], "url": session["url"]}


def create_booking_from_checkout(db: Session, checkout_session: Any) -> Booking | None:
    session_id = checkout_session["id"]
    existing = db.execute(select(Booking).where(Booking.stripe_session_id == session_id)).scalar_one_or_none()
    if existing is not None:
        logger.info("checkout_already_booked", session_id=session_id, booking_id=existing.id)
        return existing

    tour_id = int(checkout_session["client_reference_id"])
    email = str(checkout_session["customer_email"]).lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None or db.get(Tour, tour_id) is None:
        logger.warning("checkout_booking_skipped", session_id=session_id, tour_id=tour_id, email=email)
        return None

    booking = Booking(
        tour_id=tour_id,
        user_id=user.id,
        price=checkout_session["amount_total"] / 100,
        stripe_session_id=session_id,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("checkout_booking_created", session_id=session_id, booking_id=booking.id)
    return booking


def handle_webhook_event(db: Session, settings: Settings, *, payload: bytes, signature: str | None) -> None:
    event = stripe_client.construct_webhook_event(settings, payload, signature)
    if event["type"] == CHECKOUT_COMPLETED_EVENT:
        create_booking_from_checkout(db, event["data"]["object"])
    else:
        logger.info("webhook_event_ignored", event_type=event["type"])


def serialize_booking(booking: Booking) -> dict[str, Any]:
    return {
        "id": booking.id,
        "tour": {"id": booking.tour.id, "name": booking.tour.name},
        "user": {"id": booking.user.id, "name": booking.user.name, "email": booking.user.email},
        "price": booking.price,
        "paid": booking.paid,
        "createdAt": booking.created_at,
    }
