import math
import re
from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import Select

from natours.application.errors import NotFoundError, ValidationError
from natours.infrastructure.db.models import Tour, User
from natours.interfaces.api.v1.schemas.tour import TourCreate, TourUpdate

TOUR_COLUMNS = {
    "name": Tour.name,
    "slug": Tour.slug,
    "duration": Tour.duration,
    "maxGroupSize": Tour.max_group_size,
    "difficulty": Tour.difficulty,
    "ratingsAverage": Tour.ratings_average,
    "ratingsQuantity": Tour.ratings_quantity,
    "price": Tour.price,
    "priceDiscount": Tour.price_discount,
    "summary": Tour.summary,
    "createdAt": Tour.created_at,
}

TOP_CHEAP_PARAMS = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}

STATS_MIN_RATING = 4.5
MONTHS_IN_PLAN = 12

# Sphere radius per unit for radius queries, and metres-to-unit factors for distances.
EARTH_RADIUS = {"mi": 3963.2, "km": 6378.1}
EARTH_RADIUS_METRES = 6378100.0
METRES_TO_UNIT = {"mi": 0.000621371, "km": 0.001}

LATLNG_ERROR = "Please provide latitutr and longitude in the format lat,lng."


def visible_tours_query() -> Select:
    return select(Tour).where(Tour.secret_tour.is_(False)).options(selectinload(Tour.guides))


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def get_tour_by_id(db: Session, tour_id: int) -> Tour | None:
    return db.execute(visible_tours_query().where(Tour.id == tour_id)).scalar_one_or_none()


def get_tour_by_slug(db: Session, slug: str) -> Tour | None:
    return db.execute(visible_tours_query().where(Tour.slug == slug)).scalar_one_or_none()


def _resolve_guides(db: Session, guide_ids: list[int]) -> list[User]:
    if not guide_ids:
        return []
    guides = list(db.execute(select(User).where(User.id.in_(guide_ids))).scalars().all())
    missing = set(guide_ids) - {guide.id for guide in guides}
    if missing:
        raise NotFoundError(f"No user found with ID {sorted(missing)[0]}")
    return guides


def _dump_locations(payload: TourCreate | TourUpdate) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if payload.start_location is not None:
        values["start_location"] = payload.start_location.model_dump()
    if payload.locations is not None:
        values["locations"] = [location.model_dump() for location in payload.locations]
    if payload.start_dates is not None:
        values["start_dates"] = [start.isoformat() for start in payload.start_dates]
    return values


def create_tour(db: Session, payload: TourCreate) -> Tour:
    tour = Tour(
        name=payload.name,
        slug=slugify(payload.name),
        duration=payload.duration,
        max_group_size=payload.max_group_size,
        difficulty=payload.difficulty.value,
        ratings_average=round(payload.ratings_average, 1),
        ratings_quantity=payload.ratings_quantity,
        price=payload.price,
        price_discount=payload.price_discount,
        summary=payload.summary,
        description=payload.description,
        image_cover=payload.image_cover,
        images=list(payload.images),
        secret_tour=payload.secret_tour,
        **_dump_locations(payload),
    )
    tour.guides = _resolve_guides(db, payload.guides)
    db.add(tour)
    db.commit()
    db.refresh(tour)
    return tour


def update_tour(db: Session, tour: Tour, payload: TourUpdate) -> Tour:
    changes = payload.model_dump(
        exclude_unset=True,
        exclude={"start_location", "locations", "start_dates", "guides", "difficulty"},
    )
    for field_name, value in changes.items():
        if value is not None:
            setattr(tour, field_name, value)
    if payload.name is not None:
        tour.slug = slugify(payload.name)
    if payload.difficulty is not None:
        tour.difficulty = payload.difficulty.value
    if payload.ratings_average is not None:
        tour.ratings_average = round(payload.ratings_average, 1)
    for field_name, value in _dump_locations(payload).items():
        setattr(tour, field_name, value)
    if payload.guides is not None:
        tour.guides = _resolve_guides(db, payload.guides)
    if tour.price_discount is not None and tour.price_discount >= tour.price:
        raise ValidationError(f"Discount price ({tour.price_discount}) should be below regular price")
    db.commit()
    db.refresh(tour)
    return tour


def delete_tour(db: Session, tour: Tour) -> None:
    db.delete(tour)
    db.commit()


def get_tour_stats(db: Session) -> list[dict[str, Any]]:
    difficulty = func.upper(Tour.difficulty)
    rows = db.execute(
        select(
            difficulty.label("difficulty"),
            func.count(Tour.id),
            func.sum(Tour.ratings_quantity),
            func.avg(Tour.ratings_average),
            func.avg(Tour.price),
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .where(Tour.secret_tour.is_(False), Tour.ratings_average >= STATS_MIN_RATING)
        .group_by(difficulty)
        .order_by(func.avg(Tour.price))
    ).all()
    return [
        {
            "difficulty": row[0],
            "numTours": row[1],
            "numRatings": int(row[2] or 0),
            "avgRating": float(row[3]),
            "avgPrice": float(row[4]),
            "minPrice": float(row[5]),
            "maxPrice": float(row[6]),
        }
        for row in rows
    ]


def get_monthly_plan(db: Session, year: int) -> list[dict[str, Any]]:
    starts_by_month: dict[int, list[str]] = defaultdict(list)
    for tour in db.execute(visible_tours_query().order_by(Tour.id)).scalars().all():
        for raw_start in tour.start_dates:
            start = datetime.fromisoformat(raw_start)
            if start.year == year:
                starts_by_month[start.month].append(tour.name)
    plan = [
        {"month": month, "numTourStarts": len(names), "tours": names}
        for month, names in starts_by_month.items()
    ]
    plan.sort(key=lambda entry: (-entry["numTourStarts"], entry["month"]))
    return plan[:MONTHS_IN_PLAN]


def parse_latlng(latlng: str) -> tuple[float, float]:
    parts = latlng.split(",")
    if len(parts) != 2:
        raise ValidationError(LATLNG_ERROR)
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError as exc:
        raise ValidationError(LATLNG_ERROR) from exc
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(LATLNG_ERROR)
    return lat, lng


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine angle in radians between two points given in degrees."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def _start_point(tour: Tour) -> tuple[float, float] | None:
    coordinates = (tour.start_location or {}).get("coordinates")
    if not coordinates or len(coordinates) != 2:
        return None
    lng, lat = coordinates
    return lat, lng


def get_tours_within(db: Session, distance: float, latlng: str, unit: str) -> list[Tour]:
    lat, lng = parse_latlng(latlng)
    radius = EARTH_RADIUS["mi" if unit == "mi" else "km"]
    tours = []
    for tour in db.execute(visible_tours_query().order_by(Tour.id)).scalars().all():
        point = _start_point(tour)
        if point is not None and central_angle(lat, lng, *point) * radius <= distance:
            tours.append(tour)
    return tours


def get_distances(db: Session, latlng: str, unit: str) -> list[dict[str, Any]]:
    lat, lng = parse_latlng(latlng)
    multiplier = METRES_TO_UNIT["mi" if unit == "mi" else "km"]
    distances = []
    for tour in db.execute(visible_tours_query().order_by(Tour.id)).scalars().all():
        point = _start_point(tour)
        if point is None:
            continue
        metres = central_angle(lat, lng, *point) * EARTH_RADIUS_METRES
        distances.append({"id": tour.id, "name": tour.name, "distance": metres * multiplier})
    distances.sort(key=lambda entry: entry["distance"])
    return distances


def serialize_guide(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email, "photo": user.photo, "role": user.role}


def serialize_tour(tour: Tour, *, include_reviews: bool = False) -> dict[str, Any]:
    document = {
        "id": tour.id,
        "name": tour.name,
        "slug": tour.slug,
        "duration": tour.duration,
        "durationWeeks": tour.duration_weeks,
        "maxGroupSize": tour.max_group_size,
        "difficulty": tour.difficulty,
        "ratingsAverage": tour.ratings_average,
        "ratingsQuantity": tour.ratings_quantity,
        "price": tour.price,
        "priceDiscount": tour.price_discount,
        "summary": tour.summary,
        "description": tour.description,
        "imageCover": tour.image_cover,
        "images": tour.images,
        "startDates": tour.start_dates,
        "startLocation": tour.start_location,
        "locations": tour.locations,
        "guides": [serialize_guide(guide) for guide in tour.guides],
        "createdAt": tour.created_at,
    }
    if include_reviews:
        document["reviews"] = [
            {
                "id": review.id,
                "review": review.review,
                "rating": review.rating,
                "createdAt": review.created_at,
                "user": {"id": review.user.id, "name": review.user.name, "photo": review.user.photo},
            }
            for review in tour.reviews
        ]
    return document
