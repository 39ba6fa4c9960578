from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from natours.application.errors import AuthenticationError, NotFoundError
from natours.application.services.booking_service import get_booked_tours
from natours.application.services.tour_service import get_tour_by_slug, visible_tours_query
from natours.infrastructure.db.models import Tour, User
from natours.infrastructure.db.session import get_db
from natours.interfaces.api.v1.dependencies.auth import get_optional_user
from natours.interfaces.web.templating import templates

router = APIRouter(tags=["views"], include_in_schema=False)

ALERTS = {
    "booking": (
        "Your booking was successful! Please check your email for a confirmation. "
        "If your booking doesn't show up here immediately, please come back later."
    ),
}


def _render(request: Request, template: str, user: User | None, **context):
    alert = ALERTS.get(request.query_params.get("alert", ""))
    return templates.TemplateResponse(request, template, {"user": user, "alert": alert, **context})


def _require_login(user: User | None) -> User:
    if user is None:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    return user


@router.get("/")
def overview(
    request: Request,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    tours = db.execute(visible_tours_query().order_by(Tour.id)).scalars().all()
    return _render(request, "overview.html", user, title="All Tours", tours=tours)


@router.get("/tour/{slug}")
def tour_detail(
    slug: str,
    request: Request,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    tour = get_tour_by_slug(db, slug)
    if tour is None:
        raise NotFoundError("There is no tour with that name.")
    return _render(request, "tour.html", user, title=f"{tour.name} Tour", tour=tour)


@router.get("/login")
def login_form(request: Request, user: User | None = Depends(get_optional_user)):
    return _render(request, "login.html", user, title="Log into your account")


@router.get("/me")
def account(request: Request, user: User | None = Depends(get_optional_user)):
    return _render(request, "account.html", _require_login(user), title="Your account")


@router.get("/my-tours")
def my_tours(
    request: Request,
    user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    current_user = _require_login(user)
    tours = get_booked_tours(db, current_user)
    return _render(request, "overview.html", current_user, title="My Tours", tours=tours)
