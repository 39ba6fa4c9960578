import json
import logging

import structlog

from natours.infrastructure.logging import REDACTED, configure_logging, get_logger, redact_sensitive_values
from tests.helpers.settings import build_test_settings


def test_credentials_never_reach_log_lines():
    """
    Validate credential redaction.

    1. Pass an event with password and token keys through the processor.
    2. Validate the credential values are replaced.
    3. Validate other keys are kept.
    """
    event = redact_sensitive_values(None, "info", {"event": "login", "password": "pass1234", "token": "abc", "email": "a@b.c"})
    assert event["password"] == REDACTED
    assert event["token"] == REDACTED
    assert event["email"] == "a@b.c"


def test_json_logging_renders_event_lines(capsys):
    """
    Validate JSON log output.

    1. Configure logging with the JSON renderer.
    2. Emit one event carrying a password.
    3. Validate the line is JSON with event name, level and redacted password.
    """
    configure_logging(build_test_settings(log_json=True, log_level="INFO"))
    try:
        get_logger("natours.tests").info("user_login", password="pass1234", user_id=7)
        line = capsys.readouterr().out.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "user_login"
        assert payload["level"] == "info"
        assert payload["password"] == REDACTED
        assert payload["user_id"] == 7
    finally:
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()
