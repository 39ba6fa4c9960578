"""
Explicit request pipeline.

Every inbound HTTP request is wrapped in a ``RequestContext`` and handed to an
ordered list of stages. A stage answers with a ``StageResult``:

- ``Proceed``: hand the (possibly transformed) context to the next stage.
- ``ShortCircuit``: answer the request directly with the given response.
- ``Fail``: stop and route the error to the error classifier.

When the last stage proceeds, the application behind the pipeline sees the
transformed query string and body. The downstream response is buffered into a
``ResponseDraft`` so the stages that were entered can amend it, in reverse
order, before anything reaches the client.
"""

import json
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours.interfaces.http.query_string import encode_query, parse_query


def resolve_client_ip(scope: Scope, headers: Headers) -> str:
    # The service runs behind a trusted proxy: the first forwarded hop is the client.
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = scope.get("client")
    return client[0] if client else "unknown"


@dataclass
class RequestContext:
    scope: Scope
    receive: Receive = field(repr=False)
    method: str
    path: str
    headers: Headers
    client_ip: str
    query: dict[str, Any]
    cookies: dict[str, str] = field(default_factory=dict)
    body: Any = None
    body_kind: str | None = None
    body_bytes: bytes | None = field(default=None, repr=False)
    raw_body_only: bool = False
    request_time: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_scope(cls, scope: Scope, receive: Receive) -> "RequestContext":
        headers = Headers(scope=scope)
        return cls(
            scope=scope,
            receive=receive,
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            client_ip=resolve_client_ip(scope, headers),
            query=parse_query(scope.get("query_string", b"").decode("latin-1")),
        )

    @property
    def original_url(self) -> str:
        """Path plus the query string exactly as the client sent it."""
        query_string = self.scope.get("query_string", b"").decode("latin-1")
        return f"{self.path}?{query_string}" if query_string else self.path

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    @property
    def declared_length(self) -> int | None:
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    async def read_body(self, limit: int) -> bytes | None:
        """Drain the request body, returning ``None`` when it exceeds ``limit`` bytes."""
        if self.body_bytes is not None:
            return self.body_bytes if len(self.body_bytes) <= limit else None
        declared = self.declared_length
        if declared is not None and declared > limit:
            return None

        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await self.receive()
            if message["type"] != "http.request":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > limit:
                return None
            chunks.append(chunk)
            more_body = message.get("more_body", False)

        self.body_bytes = b"".join(chunks)
        return self.body_bytes

    def encoded_body(self) -> bytes | None:
        if self.body_bytes is None:
            return None
        if self.raw_body_only or self.body_kind is None or not self.body_bytes.strip():
            return self.body_bytes
        if self.body_kind == "json":
            return json.dumps(self.body).encode("utf-8")
        return encode_query(self.body).encode("latin-1")

    def downstream_scope(self) -> Scope:
        scope = dict(self.scope)
        scope["query_string"] = encode_query(self.query).encode("latin-1")
        state = dict(scope.get("state") or {})
        state.update(context=self, query=self.query, cookies=self.cookies, request_time=self.request_time)
        scope["state"] = state

        body = self.encoded_body()
        if body is not None:
            scope["headers"] = list(scope.get("headers", []))
            MutableHeaders(scope=scope)["content-length"] = str(len(body))
        return scope

    def downstream_receive(self) -> Receive:
        body = self.encoded_body()
        if body is None:
            return self.receive
        pending = [body]

        async def receive() -> Message:
            if pending:
                return {"type": "http.request", "body": pending.pop(), "more_body": False}
            return await self.receive()

        return receive


@dataclass(frozen=True)
class Proceed:
    context: RequestContext


@dataclass(frozen=True)
class ShortCircuit:
    response: Response


@dataclass(frozen=True)
class Fail:
    error: Exception


StageResult = Proceed | ShortCircuit | Fail


@dataclass
class ResponseDraft:
    status_code: int
    headers: MutableHeaders
    body: bytes

    @classmethod
    async def capture(cls, app: ASGIApp, scope: Scope, receive: Receive) -> "ResponseDraft":
        collector = _ResponseCollector()
        await app(scope, receive, collector)
        return collector.draft()

    async def send(self, send: Send) -> None:
        await send({"type": "http.response.start", "status": self.status_code, "headers": self.headers.raw})
        await send({"type": "http.response.body", "body": self.body, "more_body": False})


class _ResponseCollector:
    def __init__(self) -> None:
        self.status_code: int | None = None
        self.raw_headers: list[tuple[bytes, bytes]] = []
        self.chunks: list[bytes] = []

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
            self.raw_headers = list(message.get("headers", []))
        elif message["type"] == "http.response.body":
            self.chunks.append(message.get("body", b""))

    def draft(self) -> ResponseDraft:
        if self.status_code is None:
            raise RuntimeError("Application returned without starting a response")
        return ResponseDraft(self.status_code, MutableHeaders(raw=self.raw_headers), b"".join(self.chunks))


class Stage:
    name = "stage"

    async def process_request(self, context: RequestContext) -> StageResult:
        return Proceed(context)

    def process_response(self, context: RequestContext, response: ResponseDraft) -> None:
        return None


class RequestPipeline:
    def __init__(self, stages: Sequence[Stage]) -> None:
        self.stages = tuple(stages)

    async def run(self, context: RequestContext) -> tuple[StageResult, list[Stage]]:
        entered: list[Stage] = []
        result: StageResult = Proceed(context)
        for stage in self.stages:
            entered.append(stage)
            try:
                result = await stage.process_request(context)
            except Exception as exc:
                result = Fail(exc)
            if not isinstance(result, Proceed):
                break
            context = result.context
        return result, entered

    @staticmethod
    def finish(context: RequestContext, response: ResponseDraft, entered: Sequence[Stage]) -> None:
        for stage in reversed(entered):
            stage.process_response(context, response)


ErrorResponder = Callable[[Exception, RequestContext], Response]


class RequestPipelineMiddleware:
    """ASGI entry point that runs the pipeline in front of the routed application.

    Faults raised anywhere behind the pipeline end up in ``error_responder``, so
    no response leaves the service without passing the error classifier.
    """

    def __init__(self, app: ASGIApp, *, pipeline: RequestPipeline, error_responder: ErrorResponder) -> None:
        self.app = app
        self.pipeline = pipeline
        self.error_responder = error_responder

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope, receive)
        result, entered = await self.pipeline.run(context)
        if isinstance(result, ShortCircuit):
            draft = await ResponseDraft.capture(result.response, scope, receive)
        elif isinstance(result, Fail):
            draft = await self._error_draft(result.error, context)
        else:
            draft = await self._dispatch(result.context)

        self.pipeline.finish(context, draft, entered)
        await draft.send(send)

    async def _dispatch(self, context: RequestContext) -> ResponseDraft:
        try:
            return await ResponseDraft.capture(self.app, context.downstream_scope(), context.downstream_receive())
        except Exception as exc:
            return await self._error_draft(exc, context)

    async def _error_draft(self, exc: Exception, context: RequestContext) -> ResponseDraft:
        response = self.error_responder(exc, context)
        return await ResponseDraft.capture(response, context.scope, context.receive)
