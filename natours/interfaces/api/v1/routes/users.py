from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from natours.application.errors import AppError, AuthenticationError, NotFoundError, ValidationError
from natours.application.services.query_features_service import project, query_documents
from natours.application.services.security_service import authenticate_user, create_access_token
from natours.application.services.user_service import (
    USER_COLUMNS,
    active_users_query,
    deactivate_user,
    delete_user,
    get_user_by_id,
    serialize_user,
    signup_user,
    update_me,
    update_password,
    update_user,
)
from natours.config import Settings
from natours.domain.roles import UserRole
from natours.infrastructure.db.models import User
from natours.infrastructure.db.session import get_db
from natours.interfaces.api.v1.dependencies.auth import (
    LOGGED_OUT_TOKEN,
    TOKEN_COOKIE,
    get_current_user,
    get_settings,
    restrict_to,
)
from natours.interfaces.api.v1.dependencies.query import get_query_params
from natours.interfaces.api.v1.schemas.base import document_envelope, list_envelope
from natours.interfaces.api.v1.schemas.user import (
    LoginRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserUpdate,
)

router = APIRouter(prefix="/users", tags=["users"])

LOGOUT_COOKIE_SECONDS = 10

require_admin = restrict_to(UserRole.admin)


def _is_secure(request: Request) -> bool:
    return request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https"


def send_token(user: User, status_code: int, request: Request, settings: Settings) -> JSONResponse:
    token = create_access_token(user.id, settings)
    response = JSONResponse(
        status_code=status_code,
        content={"status": "success", "token": token, "data": {"user": _jsonable_user(user)}},
    )
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.jwt_cookie_expires_in_days * 24 * 60 * 60,
        httponly=True,
        secure=_is_secure(request),
    )
    return response


def _jsonable_user(user: User) -> dict[str, Any]:
    document = serialize_user(user)
    document["createdAt"] = user.created_at.isoformat()
    return document


def _require_user(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("No user found with that ID")
    return user


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return send_token(signup_user(db, payload), status.HTTP_201_CREATED, request, settings)


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.password:
        raise ValidationError("Please provide email and password!")
    user = authenticate_user(db, payload.email, payload.password)
    if user is None:
        raise AuthenticationError("Incorrect email or password")
    return send_token(user, status.HTTP_200_OK, request, settings)


@router.get("/logout")
def logout():
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(TOKEN_COOKIE, LOGGED_OUT_TOKEN, max_age=LOGOUT_COOKIE_SECONDS, httponly=True)
    return response


@router.patch("/updateMyPassword")
def update_my_password(
    payload: UpdatePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = update_password(db, current_user, payload)
    return send_token(user, status.HTTP_200_OK, request, settings)


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return document_envelope(serialize_user(current_user))


@router.patch("/updateMe")
def update_my_profile(
    payload: UpdateMeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"status": "success", "data": {"user": serialize_user(update_me(db, current_user, payload))}}


@router.delete("/deleteMe", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    deactivate_user(db, current_user)


@router.get("", dependencies=[Depends(require_admin)])
def get_all_users(params: dict[str, Any] = Depends(get_query_params), db: Session = Depends(get_db)):
    result = query_documents(db, active_users_query(), params, columns=USER_COLUMNS, id_column=User.id)
    return list_envelope([project(serialize_user(user), result.fields) for user in result.items])


@router.post("", dependencies=[Depends(require_admin)])
def create_user_endpoint():
    raise AppError("This route is not defined! Please use /signup instead", status_code=500)


@router.get("/{user_id}", dependencies=[Depends(require_admin)])
def get_user(user_id: int, db: Session = Depends(get_db)):
    return document_envelope(serialize_user(_require_user(db, user_id)))


@router.patch("/{user_id}", dependencies=[Depends(require_admin)])
def update_user_endpoint(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    return document_envelope(serialize_user(update_user(db, _require_user(db, user_id), payload)))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_user_endpoint(user_id: int, db: Session = Depends(get_db)):
    delete_user(db, _require_user(db, user_id))
