from fastapi.exceptions import RequestValidationError
from jose import ExpiredSignatureError, JWTError
from starlette.exceptions import HTTPException

from natours.application.errors import NotFoundError, ValidationError
from natours.application.services.security_service import create_access_token
from natours.interfaces.http.error_handlers import classify_error
from tests.helpers.auth import auth_header
from tests.helpers.settings import build_test_settings


def _explode(*args, **kwargs):
    raise RuntimeError("stats backend exploded")


def test_classify_error_maps_known_faults():
    """
    Validate classification table.

    1. Classify application, framework and token errors.
    2. Validate status codes, statuses and operational flags.
    """
    assert classify_error(NotFoundError("gone")).status_code == 404
    assert classify_error(ValidationError("bad")).status == "fail"
    assert classify_error(HTTPException(status_code=405, detail="Method Not Allowed")).message == "Method Not Allowed"
    assert classify_error(RequestValidationError([])).message.startswith("Invalid input data.")
    assert classify_error(ExpiredSignatureError()).message == "Your token has expired! Please log in again."
    assert classify_error(JWTError()).message == "Invalid token. Please log in again!"

    unexpected = classify_error(KeyError("oops"))
    assert unexpected.status_code == 500
    assert unexpected.status == "error"
    assert unexpected.is_operational is False


def test_production_hides_programming_faults(client, monkeypatch):
    """
    Validate production answer for unexpected errors.

    1. Make the stats handler raise an unexpected error.
    2. Call the endpoint once.
    3. Validate a generic 500 answer without details.
    """
    monkeypatch.setattr("natours.interfaces.api.v1.routes.tours.get_tour_stats", _explode)
    response = client.get("/api/v1/tours/tour-stats")
    assert response.status_code == 500
    assert response.json() == {"status": "error", "message": "Something went very wrong!"}


def test_production_keeps_operational_messages(client):
    """
    Validate production answer for operational errors.

    1. Request a tour that does not exist.
    2. Validate status and message only.
    """
    response = client.get("/api/v1/tours/9999")
    assert response.status_code == 404
    assert response.json() == {"status": "fail", "message": "No tour found with that ID"}


def test_development_returns_full_error_details(dev_client, monkeypatch):
    """
    Validate development answer for unexpected errors.

    1. Make the stats handler raise an unexpected error.
    2. Call the endpoint through the development app.
    3. Validate name, message and stack are returned.
    """
    monkeypatch.setattr("natours.interfaces.api.v1.routes.tours.get_tour_stats", _explode)
    response = dev_client.get("/api/v1/tours/tour-stats")
    assert response.status_code == 500
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["message"] == "stats backend exploded"
    assert payload["error"]["name"] == "RuntimeError"
    assert payload["error"]["isOperational"] is False
    assert "Traceback" in payload["stack"]


def test_validation_and_duplicate_errors_are_translated(client):
    """
    Validate error translations.

    1. Sign up with missing fields.
    2. Validate the invalid-input message.
    3. Sign up twice with one e-mail.
    4. Validate the duplicate-value message.
    """
    response = client.post("/api/v1/users/signup", json={"name": "No Email"})
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid input data.")

    body = {"name": "Twice", "email": "twice@example.com", "password": "pass12345", "passwordConfirm": "pass12345"}
    assert client.post("/api/v1/users/signup", json=body).status_code == 201
    response = client.post("/api/v1/users/signup", json=body)
    assert response.status_code == 400
    assert response.json()["message"] == "Duplicate field value: email. Please use another value!"


def test_token_errors_are_translated(client, seeded_users):
    """
    Validate JWT error translations.

    1. Call a protected route with a malformed token.
    2. Validate the invalid-token answer.
    3. Call with an expired token.
    4. Validate the expired-token answer.
    """
    response = client.get("/api/v1/users/me", headers=auth_header("not-a-token"))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token. Please log in again!"

    expired = create_access_token(seeded_users["user"].id, build_test_settings(), expires_days=-1)
    response = client.get("/api/v1/users/me", headers=auth_header(expired))
    assert response.status_code == 401
    assert response.json()["message"] == "Your token has expired! Please log in again."


def test_page_errors_render_html(client):
    """
    Validate rendered error pages.

    1. Request a tour page that does not exist.
    2. Validate an HTML 404 page with the message.
    """
    response = client.get("/tour/no-such-tour")
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "There is no tour with that name." in response.text
