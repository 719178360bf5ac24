import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from src.logging import logger
from src.mock.metrics import record_artifact_error
from src.mock.recorder import JSON_DECODE_ERRORS

Endpoint = Callable[[Request], Awaitable[Response]]

JSON_MEDIA_TYPE = "application/json"


def timestamp() -> str:
    """Current UTC wall-clock time, RFC 3339 with second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def standard_headers(server_name: str) -> Dict[str, str]:
    """
    Headers set on every dispatched, health and fallback response.

    Content-Type is left to the response class so it is never duplicated.
    """
    return {"X-Served-By": server_name, "X-Timestamp": timestamp()}


class ArtifactStore:
    """
    Read-only access to the static response artifacts.

    Artifact ``name`` maps to the file ``<root>/<name>.json``. Files are read
    on every request and returned unmodified.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        return self.root / f"{name}.json"

    def load(self, name: str) -> bytes:
        """
        Reads the artifact bytes.

        Raises:
            OSError: If the file is missing or cannot be read.
        """
        return self.path_for(name).read_bytes()


def log_json_body(request: Request, body: bytes) -> None:
    """
    Parses a request body as JSON for diagnostics only.

    The result is never used to accept or reject the request.
    """
    try:
        parsed = json.loads(body)
    except JSON_DECODE_ERRORS as e:
        logger.warning(
            f"Invalid JSON in {request.method} {request.url.path} body (ignored): {str(e)}"
        )
        return
    logger.debug(f"Parsed JSON body for {request.method} {request.url.path}: {parsed}")


def artifact_handler(
    method: str, artifact: str, store: ArtifactStore, server_name: str
) -> Endpoint:
    """
    Creates the endpoint serving one static artifact.

    POST answers 201, every other method 200. The body is the artifact file
    as stored, whatever the request carried. A missing or unreadable artifact
    is the only failure and yields a 500 naming the artifact.
    """

    async def serve_artifact(request: Request) -> Response:
        headers = standard_headers(server_name)

        if method in ("POST", "PUT"):
            body = await request.body()
            if body:
                log_json_body(request, body)

        try:
            content = await run_in_threadpool(store.load, artifact)
        except OSError as e:
            logger.error(
                f"Failed to load response artifact '{artifact}' from {store.path_for(artifact)}: {str(e)}"
            )
            record_artifact_error(artifact)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Failed to load response artifact",
                    "artifact": artifact,
                },
                headers=headers,
            )

        status_code = 201 if method == "POST" else 200
        logger.debug(
            f"Serving artifact '{artifact}' for {request.method} {request.url.path} ({len(content)} bytes)"
        )
        return Response(
            content=content,
            status_code=status_code,
            media_type=JSON_MEDIA_TYPE,
            headers=headers,
        )

    serve_artifact.__name__ = f"serve_{artifact}_{method.lower()}"
    return serve_artifact


def delete_handler(server_name: str) -> Endpoint:
    """Creates a DELETE endpoint: standard headers, 204, no body."""

    async def delete_resource(request: Request) -> Response:
        logger.debug(f"Acknowledging DELETE {request.url.path}")
        headers = standard_headers(server_name)
        headers["Content-Type"] = JSON_MEDIA_TYPE
        return Response(status_code=204, headers=headers)

    return delete_resource


def health_handler(server_name: str) -> Endpoint:
    """Creates the liveness endpoint used by external probes."""

    async def health(request: Request) -> Response:
        return JSONResponse(
            content={
                "status": "healthy",
                "timestamp": timestamp(),
                "server": server_name,
            },
            headers=standard_headers(server_name),
        )

    return health


def echo_handler(server_name: str) -> Endpoint:
    """
    Creates the echo endpoint.

    JSON bodies that parse are re-serialised; anything else comes back
    verbatim as plain text.
    """

    async def echo(request: Request) -> Response:
        body = await request.body()
        headers = standard_headers(server_name)
        if JSON_MEDIA_TYPE in request.headers.get("content-type", ""):
            try:
                return JSONResponse(content=json.loads(body), headers=headers)
            except JSON_DECODE_ERRORS:
                logger.warning("Echo body is not valid JSON, returning it as text")
        return Response(content=body, media_type="text/plain", headers=headers)

    return echo
