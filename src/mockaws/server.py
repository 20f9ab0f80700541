"""HTTP front end speaking the DynamoDB JSON protocol.

Requests are ``POST``s carrying an ``X-Amz-Target`` header of the form
``DynamoDB_20120810.<Operation>`` and a JSON body. Signatures are not
verified.
"""

import json
import traceback
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from ulid import ULID

from . import schema
from ._version import __version__
from .engine import ItemStoreEngine
from .exceptions import MockAWSError


class StructuredLogger:
    """
    Writes one JSON object per line to stdout.

    Fields bound with ``bind`` (the request id and operation of a request)
    are repeated on every line the bound logger writes.
    """

    def __init__(self, name: str, **context: Any):
        self._name = name
        self._context = context

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds ``fields`` to every entry."""
        return StructuredLogger(self._name, **{**self._context, **fields})

    def _emit(self, level: str, message: str, exc_info: bool, extra: dict[str, Any]) -> None:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "logger": self._name,
            "service": "mockaws",
            "message": message,
            **self._context,
            **extra,
        }
        if exc_info:
            entry["exception"] = traceback.format_exc()
        print(json.dumps(entry, default=str))

    def info(self, message: str, **extra: Any) -> None:
        self._emit("INFO", message, False, extra)

    def warning(self, message: str, **extra: Any) -> None:
        self._emit("WARNING", message, False, extra)

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        self._emit("ERROR", message, exc_info, extra)


logger = StructuredLogger(__name__)

ALLOWED_HEADERS = [
    "authorization",
    "content-type",
    "x-amz-content-sha256",
    "x-amz-date",
    "x-amz-security-token",
    "x-amz-target",
    "x-amz-user-agent",
]


def json_response(
    status_code: int, body: Any, request_id: str, headers: dict[str, str] | None = None
) -> Response:
    """Create a DynamoDB JSON response."""
    response_headers = {"x-amzn-RequestId": request_id}
    if headers:
        response_headers.update(headers)
    return Response(
        content=json.dumps(body, default=str),
        status_code=status_code,
        media_type=schema.CONTENT_TYPE,
        headers=response_headers,
    )


def error_response(status_code: int, code: str, message: str, request_id: str) -> Response:
    """Create an error response in the shape botocore parses."""
    body = {"__type": f"com.amazonaws.dynamodb.v20120810#{code}", "message": message}
    return json_response(status_code, body, request_id)


def create_app(engine: ItemStoreEngine) -> FastAPI:
    """
    Build the FastAPI application serving one engine.

    Args:
        engine: Engine every request is dispatched to
    """
    app = FastAPI(
        title="mockaws",
        description="Local DynamoDB emulator",
        version=__version__,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["x-amzn-RequestId"],
        max_age=86400,
    )

    @app.get("/health", response_class=PlainTextResponse)
    async def health_check() -> str:
        """Health check endpoint."""
        return "OK"

    @app.post("/{path:path}")
    async def dispatch(request: Request, path: str) -> Response:
        """Route a DynamoDB request to the engine by its target header."""
        request_id = str(ULID())
        log = logger.bind(request_id=request_id)
        target = request.headers.get("x-amz-target")
        if not target:
            log.warning("Request failed", reason="missing target")
            return error_response(
                400, "UnknownOperationException", "Missing X-Amz-Target header", request_id
            )

        operation = schema.operation_name(target)
        log = log.bind(operation=operation)
        log.info("Request received", path=path)

        raw = await request.body()
        try:
            body = json.loads(raw) if raw else {}
        except ValueError:
            body = None
        if not isinstance(body, dict):
            log.warning("Request failed", reason="body is not a JSON object")
            return error_response(
                400, "SerializationException", "Request body must be a JSON object", request_id
            )

        try:
            result = engine.handle(operation, body)
        except MockAWSError as e:
            if e.status_code >= 500:
                log.error("Request failed", exc_info=True, code=e.code)
            else:
                log.warning("Request failed", code=e.code, error=str(e))
            return json_response(e.status_code, e.as_dict(), request_id)
        except Exception as e:
            log.error("Request failed", exc_info=True, code="InternalServerError")
            return error_response(500, "InternalServerError", str(e), request_id)

        return json_response(200, result, request_id)

    return app
