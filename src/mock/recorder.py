import json
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from pydantic import BaseModel, ConfigDict
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.logging import logger
from src.mock.metrics import observe_request_latency, record_request

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

# json.loads raises RecursionError rather than ValueError on very deeply nested input
JSON_DECODE_ERRORS = (ValueError, RecursionError)


def _text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class RequestObservation(BaseModel):
    """
    Immutable snapshot of an inbound request, built once on entry and logged.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    path: str
    query: str
    protocol: str
    host: Optional[str] = None
    remote_addr: Optional[str] = None
    content_length: Optional[int] = None
    headers: List[Tuple[str, str]] = []
    body: bytes = b""
    form: Optional[Dict[str, List[str]]] = None
    json_body: Any = None

    @classmethod
    def from_request(cls, request: Request, body: bytes) -> "RequestObservation":
        content_type = request.headers.get("content-type", "")
        content_length = request.headers.get("content-length")
        client = request.client

        form = None
        if content_type.startswith(FORM_CONTENT_TYPE):
            form = parse_qs(_text(body), keep_blank_values=True)

        json_body = None
        if JSON_CONTENT_TYPE in content_type and body:
            try:
                json_body = json.loads(body)
            except JSON_DECODE_ERRORS as e:
                logger.warning(
                    f"Request body for {request.url.path} is not valid JSON, recording it raw: {type(e).__name__}"
                )
                json_body = None

        return cls(
            method=request.method,
            url=str(request.url),
            path=request.url.path,
            query=request.url.query,
            protocol=f"HTTP/{request.scope.get('http_version', '1.1')}",
            host=request.headers.get("host"),
            remote_addr=f"{client.host}:{client.port}" if client else None,
            content_length=int(content_length) if content_length and content_length.isdigit() else None,
            headers=[(name, value) for name, value in request.headers.items()],
            body=body,
            form=form,
            json_body=json_body,
        )

    def render(self) -> str:
        lines = [
            "=== Incoming Request ===",
            f"Method: {self.method}",
            f"URL: {self.url}",
            f"Path: {self.path}",
            f"Query: {self.query}",
            f"Protocol: {self.protocol}",
            f"Host: {self.host}",
            f"Remote Address: {self.remote_addr}",
            f"Content-Length: {self.content_length if self.content_length is not None else 'unknown'}",
            "Headers:",
        ]
        lines.extend(f"  {name}: {value}" for name, value in self.headers)
        if self.body:
            lines.append(f"Body: {_text(self.body)}")
        else:
            lines.append("Body: <empty>")
        if self.form is not None:
            lines.append(f"Form: {self.form}")
        if self.json_body is not None:
            lines.append(f"JSON: {json.dumps(self.json_body, indent=2)}")
        lines.append("========================")
        return "\n".join(lines)

    def context(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "path": self.path,
            "query": self.query,
            "protocol": self.protocol,
            "host": self.host,
            "remote_addr": self.remote_addr,
            "content_length": self.content_length,
            "headers": self.headers,
            "body": _text(self.body),
            "form": self.form,
            "json": self.json_body,
        }


class ResponseCapture:
    """
    Wraps the ASGI ``send`` callable.

    Every message is forwarded unchanged; the status code of the response
    start message and the bytes of each body message are kept for logging.
    The status stays 200 until a response start message says otherwise;
    ``started`` tells whether one was ever sent.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code = 200
        self.started = False
        self.body = bytearray()

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
            self.started = True
        elif message["type"] == "http.response.body":
            self.body.extend(message.get("body", b""))
        await self._send(message)

    def render(self, duration: float, error: Optional[BaseException] = None) -> str:
        lines = ["=== Response ==="]
        if error is not None and not self.started:
            lines.append("Status: not sent (handler raised before responding)")
        else:
            lines.append(f"Status: {self.status_code}")
        lines.extend(
            [
                f"Body Length: {len(self.body)}",
                f"Body: {_text(bytes(self.body))}",
                f"Duration: {duration * 1000:.3f}ms",
            ]
        )
        if error is not None:
            lines.append(f"Error: {type(error).__name__}: {error}")
        lines.append("================")
        return "\n".join(lines)


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """
    Returns a ``receive`` callable that hands the already-read body to the
    downstream app as a single message, then defers to the original channel
    (which only ever yields the disconnect event afterwards).
    """
    delivered = False

    async def receive_replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return receive_replay


class RequestRecorderMiddleware:
    """
    Logs the full contents of every request and of the response sent back.

    The request body is read up front and replayed downstream, so handlers
    can still read it. The response is observed through
    :class:`ResponseCapture`, which passes every byte through untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request = Request(scope, receive)
        try:
            body = await request.body()
        except Exception as e:
            logger.error(f"Error reading request body for {request.url.path}: {str(e)}")
            body = b""

        observation = RequestObservation.from_request(request, body)
        logger.info(observation.render(), extra={"context": observation.context()})

        capture = ResponseCapture(send)
        error: Optional[BaseException] = None
        try:
            await self.app(scope, replay_receive(body, receive), capture)
        except Exception as e:
            error = e
            raise
        finally:
            duration = time.perf_counter() - start_time
            # An app that raised before responding is answered 500 by the global handler
            status_code = capture.status_code if capture.started or error is None else None
            logger.info(
                capture.render(duration, error),
                extra={
                    "context": {
                        "status_code": status_code,
                        "body_length": len(capture.body),
                        "body": _text(bytes(capture.body)),
                        "duration_ms": round(duration * 1000, 3),
                        "error": repr(error) if error is not None else None,
                    }
                },
            )
            record_request(observation.method, status_code or 500)
            observe_request_latency(duration)
