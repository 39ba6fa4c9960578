from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import Select

from natours.application.errors import NotFoundError
from natours.infrastructure.db.models import Review, Tour, User
from natours.interfaces.api.v1.schemas.review import ReviewCreate, ReviewUpdate

REVIEW_COLUMNS = {
    "rating": Review.rating,
    "tour": Review.tour_id,
    "user": Review.user_id,
    "createdAt": Review.created_at,
}

DEFAULT_RATINGS_AVERAGE = 4.5


def reviews_query(tour_id: int | None = None) -> Select:
    query = select(Review).options(selectinload(Review.user))
    if tour_id is not None:
        query = query.where(Review.tour_id == tour_id)
    return query


def get_review_by_id(db: Session, review_id: int) -> Review | None:
    return db.execute(reviews_query().where(Review.id == review_id)).scalar_one_or_none()


def calc_average_ratings(db: Session, tour_id: int) -> None:
    """Recompute a tour's rating summary from its current reviews."""
    quantity, average = db.execute(
        select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
    ).one()
    tour = db.get(Tour, tour_id)
    if tour is None:
        return
    if quantity:
        tour.ratings_quantity = quantity
        tour.ratings_average = round(float(average), 1)
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATINGS_AVERAGE
    db.commit()


def create_review(db: Session, payload: ReviewCreate, *, tour_id: int, user_id: int) -> Review:
    if db.get(Tour, tour_id) is None:
        raise NotFoundError("No tour found with that ID")
    if db.get(User, user_id) is None:
        raise NotFoundError("No user found with that ID")
    review = Review(review=payload.review, rating=payload.rating, tour_id=tour_id, user_id=user_id)
    db.add(review)
    db.commit()
    calc_average_ratings(db, tour_id)
    db.refresh(review)
    return review


def update_review(db: Session, review: Review, payload: ReviewUpdate) -> Review:
    if payload.review is not None:
        review.review = payload.review
    if payload.rating is not None:
        review.rating = payload.rating
    db.commit()
    calc_average_ratings(db, review.tour_id)
    db.refresh(review)
    return review


def delete_review(db: Session, review: Review) -> None:
    tour_id = review.tour_id
    db.delete(review)
    db.commit()
    calc_average_ratings(db, tour_id)


def serialize_review(review: Review) -> dict[str, Any]:
    return {
        "id": review.id,
        "review": review.review,
        "rating": review.rating,
        "createdAt": review.created_at,
        "tour": review.tour_id,
        "user": {"id": review.user.id, "name": review.user.name, "photo": review.user.photo},
    }
