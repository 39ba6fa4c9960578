import gzip
import json
import stat
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from limits import RateLimitItemPerSecond
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import cookie_parser
from starlette.responses import FileResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Receive, Scope, Send

from natours.application.errors import PayloadTooLargeError, RateLimitExceededError, ValidationError
from natours.config import Settings
from natours.infrastructure.logging import get_logger
from natours.interfaces.http.pipeline import (
    Fail,
    Proceed,
    RequestContext,
    ResponseDraft,
    ShortCircuit,
    Stage,
    StageResult,
)
from natours.interfaces.http.query_string import parse_query

logger = get_logger(__name__)

CORS_METHODS = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]

SECURE_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;frame-ancestors 'self';"
        "img-src 'self' data:;object-src 'none';script-src 'self' https://js.stripe.com;"
        "script-src-attr 'none';style-src 'self' https: 'unsafe-inline';frame-src https://js.stripe.com"
    ),
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
}

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again in an hour!"
RATE_LIMIT_NAMESPACE = "api"

WEBHOOK_ROUTES = frozenset({("POST", "/webhook-checkout")})

POLLUTION_WHITELIST = frozenset(
    {"duration", "ratingsQuantity", "ratingsAverage", "maxGroupSize", "difficulty", "price"}
)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


async def _unmounted_app(scope: Scope, receive: Receive, send: Send) -> None:
    raise RuntimeError("CORS policy is evaluated by CorsStage, not mounted as middleware")


class CorsStage(Stage):
    """Allow every origin; answer every OPTIONS request directly."""

    name = "cors"

    def __init__(self) -> None:
        self._policy = CORSMiddleware(
            _unmounted_app,
            allow_origins=["*"],
            allow_methods=CORS_METHODS,
            allow_headers=["*"],
        )

    async def process_request(self, context: RequestContext) -> StageResult:
        if context.method != "OPTIONS":
            return Proceed(context)
        if "origin" in context.headers and "access-control-request-method" in context.headers:
            return ShortCircuit(self._policy.preflight_response(request_headers=context.headers))
        return ShortCircuit(Response(status_code=204, headers={"Access-Control-Allow-Methods": ", ".join(CORS_METHODS)}))

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        for key, value in self._policy.simple_headers.items():
            response.headers.setdefault(key, value)


class StaticAssetStage(Stage):
    name = "static"

    def __init__(self, directory: Path) -> None:
        self._files = StaticFiles(directory=directory, check_dir=False)

    async def process_request(self, context: RequestContext) -> StageResult:
        if context.method not in ("GET", "HEAD"):
            return Proceed(context)
        relative_path = context.path.lstrip("/")
        if not relative_path:
            return Proceed(context)
        full_path, stat_result = self._files.lookup_path(relative_path)
        if stat_result is None or not stat.S_ISREG(stat_result.st_mode):
            return Proceed(context)
        return ShortCircuit(FileResponse(full_path, stat_result=stat_result, method=context.method))


class SecurityHeadersStage(Stage):
    name = "security_headers"

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        for header_name, header_value in SECURE_HEADERS.items():
            response.headers.setdefault(header_name, header_value)


class DevelopmentLoggingStage(Stage):
    name = "dev_logging"

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        logger.info(
            "http_request",
            method=context.method,
            path=context.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - context.started_at) * 1000, 3),
            content_length=len(response.body),
        )


class RateLimitStage(Stage):
    """Moving-window quota per client IP on every path under ``path_prefix``.

    Every caller behind the same address shares one quota.
    """

    name = "rate_limit"

    def __init__(self, *, max_requests: int, window_seconds: int, storage_uri: str, path_prefix: str = "/api") -> None:
        self._item = RateLimitItemPerSecond(max_requests, window_seconds)
        options = {"implementation": "redispy"} if "redis" in storage_uri.split("://")[0] else {}
        self._limiter = MovingWindowRateLimiter(storage_from_string(storage_uri, **options))
        self._prefix = path_prefix

    def applies_to(self, path: str) -> bool:
        return path == self._prefix or path.startswith(f"{self._prefix}/")

    async def process_request(self, context: RequestContext) -> StageResult:
        if not self.applies_to(context.path):
            return Proceed(context)
        allowed = await self._limiter.hit(self._item, RATE_LIMIT_NAMESPACE, context.client_ip)
        stats = await self._limiter.get_window_stats(self._item, RATE_LIMIT_NAMESPACE, context.client_ip)
        remaining = stats.remaining
        context.state["rate_limit_remaining"] = remaining
        if not allowed:
            return Fail(RateLimitExceededError(RATE_LIMIT_MESSAGE))
        return Proceed(context)

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        remaining = context.state.get("rate_limit_remaining")
        if remaining is None:
            return
        response.headers["X-RateLimit-Limit"] = str(self._item.amount)
        response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))


class RawBodyStage(Stage):
    """Capture the exact request bytes for routes that verify signatures over them.

    Later stages leave such a body untouched.
    """

    name = "raw_body"

    def __init__(self, *, routes: Iterable[tuple[str, str]] = WEBHOOK_ROUTES, limit_bytes: int) -> None:
        self._routes = frozenset(routes)
        self._limit = limit_bytes

    async def process_request(self, context: RequestContext) -> StageResult:
        if (context.method, context.path) not in self._routes:
            return Proceed(context)
        raw = await context.read_body(self._limit)
        if raw is None:
            return Fail(PayloadTooLargeError("Request entity too large"))
        context.raw_body_only = True
        return Proceed(context)


def _body_kind(content_type: str) -> str | None:
    if content_type == "application/json" or content_type.endswith("+json"):
        return "json"
    if content_type == FORM_CONTENT_TYPE:
        return "form"
    return None


class BodyParsingStage(Stage):
    name = "body_parsing"

    def __init__(self, *, limit_bytes: int) -> None:
        self._limit = limit_bytes

    async def process_request(self, context: RequestContext) -> StageResult:
        if context.raw_body_only:
            return Proceed(context)
        kind = _body_kind(context.content_type)
        if kind is None:
            return Proceed(context)

        raw = await context.read_body(self._limit)
        if raw is None:
            return Fail(PayloadTooLargeError(f"Request body exceeds the {self._limit // 1024}kb limit"))

        context.body_kind = kind
        if not raw.strip():
            context.body = {}
        elif kind == "json":
            try:
                context.body = json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError):
                return Fail(ValidationError("Invalid JSON in request body"))
        else:
            context.body = parse_query(raw.decode("utf-8", errors="replace"))
        return Proceed(context)


class CookieParsingStage(Stage):
    name = "cookies"

    async def process_request(self, context: RequestContext) -> StageResult:
        context.cookies = cookie_parser(context.headers.get("cookie", ""))
        return Proceed(context)


def strip_operator_keys(value: Any) -> Any:
    """Drop ``$``-prefixed and dotted keys that would act as query operators."""
    if isinstance(value, dict):
        return {
            key: strip_operator_keys(nested)
            for key, nested in value.items()
            if not (str(key).startswith("$") or "." in str(key))
        }
    if isinstance(value, list):
        return [strip_operator_keys(item) for item in value]
    return value


def escape_markup(value: Any) -> Any:
    if isinstance(value, str):
        return value.replace("<", "&lt;").replace(">", "&gt;")
    if isinstance(value, dict):
        return {key: escape_markup(nested) for key, nested in value.items()}
    if isinstance(value, list):
        return [escape_markup(item) for item in value]
    return value


class InjectionSanitizationStage(Stage):
    name = "injection_sanitization"

    async def process_request(self, context: RequestContext) -> StageResult:
        context.query = strip_operator_keys(context.query)
        if context.body is not None and not context.raw_body_only:
            context.body = strip_operator_keys(context.body)
        return Proceed(context)


class XssSanitizationStage(Stage):
    name = "xss_sanitization"

    async def process_request(self, context: RequestContext) -> StageResult:
        context.query = escape_markup(context.query)
        if context.body is not None and not context.raw_body_only:
            context.body = escape_markup(context.body)
        return Proceed(context)


def collapse_repeated_parameters(query: dict[str, Any], whitelist: Iterable[str]) -> dict[str, Any]:
    allowed = frozenset(whitelist)
    return {
        key: value[-1] if isinstance(value, list) and value and key not in allowed else value
        for key, value in query.items()
    }


class ParameterPollutionStage(Stage):
    name = "parameter_pollution"

    def __init__(self, whitelist: Iterable[str] = POLLUTION_WHITELIST) -> None:
        self._whitelist = frozenset(whitelist)

    async def process_request(self, context: RequestContext) -> StageResult:
        context.query = collapse_repeated_parameters(context.query, self._whitelist)
        return Proceed(context)


class CompressionStage(Stage):
    name = "compression"

    def __init__(self, *, minimum_size: int = 1000, level: int = 6) -> None:
        self._minimum_size = minimum_size
        self._level = level

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        if "gzip" not in context.headers.get("accept-encoding", "").lower():
            return
        if len(response.body) < self._minimum_size or "content-encoding" in response.headers:
            return
        if response.headers.get("content-type", "").startswith("text/event-stream"):
            return
        response.body = gzip.compress(response.body, compresslevel=self._level)
        response.headers["Content-Encoding"] = "gzip"
        response.headers["Content-Length"] = str(len(response.body))
        response.headers.add_vary_header("Accept-Encoding")


class RequestTimeStage(Stage):
    name = "request_time"

    async def process_request(self, context: RequestContext) -> StageResult:
        context.request_time = datetime.now(timezone.utc).isoformat()
        return Proceed(context)


def build_default_stages(settings: Settings, *, public_dir: Path) -> list[Stage]:
    # Order matters: the raw webhook body must be captured before generic parsing,
    # and the rate limit runs before any body is read.
    stages: list[Stage] = [
        CorsStage(),
        StaticAssetStage(public_dir),
        SecurityHeadersStage(),
    ]
    if settings.is_development:
        stages.append(DevelopmentLoggingStage())
    stages.extend(
        [
            RateLimitStage(
                max_requests=settings.rate_limit_max,
                window_seconds=settings.rate_limit_window_seconds,
                storage_uri=settings.rate_limit_storage_uri,
            ),
            RawBodyStage(limit_bytes=settings.webhook_body_limit_bytes),
            BodyParsingStage(limit_bytes=settings.body_limit_bytes),
            CookieParsingStage(),
            InjectionSanitizationStage(),
            XssSanitizationStage(),
            ParameterPollutionStage(),
            CompressionStage(),
            RequestTimeStage(),
        ]
    )
    return stages
