from collections.abc import Callable

from fastapi import Depends, Request
from jose import JWTError
from sqlalchemy.orm import Session

from natours.application.errors import AuthenticationError, ForbiddenError
from natours.application.services.security_service import changed_password_after, decode_access_token
from natours.application.services.user_service import get_user_by_id
from natours.config import Settings
from natours.domain.roles import UserRole
from natours.infrastructure.db.models import User
from natours.infrastructure.db.session import get_db

TOKEN_COOKIE = "jwt"
LOGGED_OUT_TOKEN = "loggedout"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def extract_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer ") :].strip() or None
    token = request.cookies.get(TOKEN_COOKIE)
    if token and token != LOGGED_OUT_TOKEN:
        return token
    return None


def resolve_user(token: str, db: Session, settings: Settings) -> User:
    claims = decode_access_token(token, settings)
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token. Please log in again!") from exc
    user = get_user_by_id(db, user_id)
    if user is None:
        raise AuthenticationError("The user belonging to this token does no longer exist.")
    if changed_password_after(user, int(claims.get("iat", 0))):
        raise AuthenticationError("User recently changed password! Please log in again.")
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = extract_token(request)
    if token is None:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    return resolve_user(token, db, settings)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User | None:
    """Resolve the logged-in user for rendered pages; any token problem means anonymous."""
    token = request.cookies.get(TOKEN_COOKIE)
    if not token or token == LOGGED_OUT_TOKEN:
        return None
    try:
        return resolve_user(token, db, settings)
    except (JWTError, AuthenticationError):
        return None


def restrict_to(*roles: UserRole) -> Callable:
    allowed = {role.value for role in roles}

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return current_user

    return checker
