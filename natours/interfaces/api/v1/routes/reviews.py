from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from natours.application.errors import NotFoundError, ValidationError
from natours.application.services.query_features_service import project, query_documents
from natours.application.services.review_service import (
    REVIEW_COLUMNS,
    create_review,
    delete_review,
    get_review_by_id,
    reviews_query,
    serialize_review,
    update_review,
)
from natours.domain.roles import UserRole
from natours.infrastructure.db.models import Review, User
from natours.infrastructure.db.session import get_db
from natours.interfaces.api.v1.dependencies.auth import get_current_user, restrict_to
from natours.interfaces.api.v1.dependencies.query import get_query_params
from natours.interfaces.api.v1.schemas.base import document_envelope, list_envelope
from natours.interfaces.api.v1.schemas.review import ReviewCreate, ReviewUpdate

router = APIRouter(prefix="/reviews", tags=["reviews"], dependencies=[Depends(get_current_user)])
tour_reviews_router = APIRouter(
    prefix="/tours/{tour_id}/reviews",
    tags=["reviews"],
    dependencies=[Depends(get_current_user)],
)

require_reviewer = restrict_to(UserRole.user)
require_review_owner_or_admin = restrict_to(UserRole.user, UserRole.admin)


def _list_reviews(db: Session, params: dict[str, Any], tour_id: int | None) -> dict[str, Any]:
    result = query_documents(db, reviews_query(tour_id), params, columns=REVIEW_COLUMNS, id_column=Review.id)
    return list_envelope([project(serialize_review(review), result.fields) for review in result.items])


def _create_review(db: Session, payload: ReviewCreate, current_user: User, tour_id: int | None) -> dict[str, Any]:
    target_tour = payload.tour if payload.tour is not None else tour_id
    if target_tour is None:
        raise ValidationError("Review must belong to a tour.")
    target_user = payload.user if payload.user is not None else current_user.id
    review = create_review(db, payload, tour_id=target_tour, user_id=target_user)
    return document_envelope(serialize_review(review))


def _require_review(db: Session, review_id: int) -> Review:
    review = get_review_by_id(db, review_id)
    if review is None:
        raise NotFoundError("No review found with that ID")
    return review


@router.get("")
def get_all_reviews(params: dict[str, Any] = Depends(get_query_params), db: Session = Depends(get_db)):
    return _list_reviews(db, params, None)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review_endpoint(
    payload: ReviewCreate,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    return _create_review(db, payload, current_user, None)


@router.get("/{review_id}")
def get_review(review_id: int, db: Session = Depends(get_db)):
    return document_envelope(serialize_review(_require_review(db, review_id)))


@router.patch("/{review_id}", dependencies=[Depends(require_review_owner_or_admin)])
def update_review_endpoint(review_id: int, payload: ReviewUpdate, db: Session = Depends(get_db)):
    review = update_review(db, _require_review(db, review_id), payload)
    return document_envelope(serialize_review(review))


@router.delete(
    "/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_review_owner_or_admin)],
)
def delete_review_endpoint(review_id: int, db: Session = Depends(get_db)):
    delete_review(db, _require_review(db, review_id))


@tour_reviews_router.get("")
def get_tour_reviews(
    tour_id: int,
    params: dict[str, Any] = Depends(get_query_params),
    db: Session = Depends(get_db),
):
    return _list_reviews(db, params, tour_id)


@tour_reviews_router.post("", status_code=status.HTTP_201_CREATED)
def create_tour_review(
    tour_id: int,
    payload: ReviewCreate,
    current_user: User = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    return _create_review(db, payload, current_user, tour_id)
