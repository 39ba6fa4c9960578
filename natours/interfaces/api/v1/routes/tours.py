from typing import Any, Literal

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from natours.application.errors import NotFoundError
from natours.application.services.query_features_service import project, query_documents
from natours.application.services.tour_service import (
    TOP_CHEAP_PARAMS,
    TOUR_COLUMNS,
    create_tour,
    delete_tour,
    get_distances,
    get_monthly_plan,
    get_tour_by_id,
    get_tour_stats,
    get_tours_within,
    serialize_tour,
    update_tour,
    visible_tours_query,
)
from natours.domain.roles import UserRole
from natours.infrastructure.db.models import Tour
from natours.infrastructure.db.session import get_db
from natours.interfaces.api.v1.dependencies.auth import restrict_to
from natours.interfaces.api.v1.dependencies.query import get_query_params
from natours.interfaces.api.v1.schemas.base import document_envelope, list_envelope
from natours.interfaces.api.v1.schemas.tour import TourCreate, TourUpdate

router = APIRouter(prefix="/tours", tags=["tours"])

DistanceUnit = Literal["mi", "km"]

require_tour_manager = restrict_to(UserRole.admin, UserRole.lead_guide)


def _list_tours(db: Session, params: dict[str, Any]) -> dict[str, Any]:
    result = query_documents(db, visible_tours_query(), params, columns=TOUR_COLUMNS, id_column=Tour.id)
    return list_envelope([project(serialize_tour(tour), result.fields) for tour in result.items])


def _require_tour(db: Session, tour_id: int) -> Tour:
    tour = get_tour_by_id(db, tour_id)
    if tour is None:
        raise NotFoundError("No tour found with that ID")
    return tour


@router.get("/top-5-cheap")
def get_top_cheap_tours(params: dict[str, Any] = Depends(get_query_params), db: Session = Depends(get_db)):
    return _list_tours(db, {**params, **TOP_CHEAP_PARAMS})


@router.get("/tour-stats")
def tour_stats(db: Session = Depends(get_db)):
    return {"status": "success", "data": {"stats": get_tour_stats(db)}}


@router.get(
    "/monthly-plan/{year}",
    dependencies=[Depends(restrict_to(UserRole.admin, UserRole.lead_guide, UserRole.guide))],
)
def monthly_plan(year: int, db: Session = Depends(get_db)):
    return {"status": "success", "data": {"plan": get_monthly_plan(db, year)}}


@router.get("/tours-within/{distance}/center/{latlng}/unit/{unit}")
def tours_within(distance: float, latlng: str, unit: DistanceUnit, db: Session = Depends(get_db)):
    tours = get_tours_within(db, distance, latlng, unit)
    return list_envelope([serialize_tour(tour) for tour in tours])


@router.get("/distances/{latlng}/unit/{unit}")
def distances(latlng: str, unit: DistanceUnit, db: Session = Depends(get_db)):
    return list_envelope(get_distances(db, latlng, unit))


@router.get("")
def get_all_tours(params: dict[str, Any] = Depends(get_query_params), db: Session = Depends(get_db)):
    return _list_tours(db, params)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_tour_manager)])
def create_tour_endpoint(payload: TourCreate, db: Session = Depends(get_db)):
    return document_envelope(serialize_tour(create_tour(db, payload)))


@router.get("/{tour_id}")
def get_tour(tour_id: int, db: Session = Depends(get_db)):
    return document_envelope(serialize_tour(_require_tour(db, tour_id), include_reviews=True))


@router.patch("/{tour_id}", dependencies=[Depends(require_tour_manager)])
def update_tour_endpoint(tour_id: int, payload: TourUpdate, db: Session = Depends(get_db)):
    tour = _require_tour(db, tour_id)
    return document_envelope(serialize_tour(update_tour(db, tour, payload)))


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_tour_manager)])
def delete_tour_endpoint(tour_id: int, db: Session = Depends(get_db)):
    delete_tour(db, _require_tour(db, tour_id))
