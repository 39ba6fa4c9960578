from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from natours.application.errors import AuthenticationError, ValidationError
from natours.application.services.security_service import hash_password, mark_password_changed, verify_password
from natours.infrastructure.db.models import User
from natours.interfaces.api.v1.schemas.user import SignupRequest, UpdateMeRequest, UpdatePasswordRequest, UserUpdate

USER_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "createdAt": User.created_at,
}


def active_users_query() -> Select:
    return select(User).where(User.active.is_(True))


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.execute(active_users_query().where(User.id == user_id)).scalar_one_or_none()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(active_users_query().where(User.email == email.lower())).scalar_one_or_none()


def signup_user(db: Session, payload: SignupRequest) -> User:
    user = User(
        name=payload.name,
        email=str(payload.email).lower(),
        hashed_password=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_me(db: Session, user: User, payload: UpdateMeRequest) -> User:
    if payload.password is not None or payload.password_confirm is not None:
        raise ValidationError("This route is not for password updates. Please use /updateMyPassword.")
    if payload.name is not None:
        user.name = payload.name
    if payload.email is not None:
        user.email = str(payload.email).lower()
    db.commit()
    db.refresh(user)
    return user


def update_password(db: Session, user: User, payload: UpdatePasswordRequest) -> User:
    if not verify_password(payload.password_current, user.hashed_password):
        raise AuthenticationError("Your current password is wrong.")
    user.hashed_password = hash_password(payload.password)
    mark_password_changed(user)
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user: User) -> None:
    user.active = False
    db.commit()


def update_user(db: Session, user: User, payload: UserUpdate) -> User:
    # Password changes only go through update_password.
    if payload.name is not None:
        user.name = payload.name
    if payload.email is not None:
        user.email = str(payload.email).lower()
    if payload.photo is not None:
        user.photo = payload.photo
    if payload.role is not None:
        user.role = payload.role.value
    if payload.active is not None:
        user.active = payload.active
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    db.delete(user)
    db.commit()


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "photo": user.photo,
        "role": user.role,
        "createdAt": user.created_at,
    }
