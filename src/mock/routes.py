import re
from typing import List, Optional, Tuple

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict
from starlette.routing import request_response
from starlette.types import Receive, Scope, Send

from src.config import Settings
from src.logging import logger
from src.mock.dispatcher import (
    ArtifactStore,
    Endpoint,
    artifact_handler,
    delete_handler,
    echo_handler,
    health_handler,
)
from src.mock.fallback import fallback_handler

_PARAM_PATTERN = re.compile(r"\{(\w+)\}")


class AnyMethodEndpoint:
    """
    Exposes a request handler as a plain ASGI app.

    Starlette restricts function endpoints to GET when no methods are given,
    but routes an ASGI app for every method, HEAD, TRACE and custom verbs
    included.
    """

    def __init__(self, endpoint: Endpoint) -> None:
        self._app = request_response(endpoint)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._app(scope, receive, send)


class RouteBinding(BaseModel):
    """
    A fixed (method, path) -> artifact association.

    Bindings without an artifact are DELETE bindings, which answer 204
    without touching the artifact store. Path parameters are matched but
    never influence the response.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    artifact: Optional[str] = None

    @property
    def param(self) -> Optional[str]:
        match = _PARAM_PATTERN.search(self.path)
        return match.group(1) if match else None


ROUTE_BINDINGS: Tuple[RouteBinding, ...] = (
    RouteBinding(method="GET", path="/users", artifact="users"),
    RouteBinding(method="POST", path="/users", artifact="user"),
    RouteBinding(method="GET", path="/users/{id}", artifact="user"),
    RouteBinding(method="PUT", path="/users/{id}", artifact="user"),
    RouteBinding(method="DELETE", path="/users/{id}"),
    RouteBinding(method="GET", path="/products", artifact="products"),
    RouteBinding(method="GET", path="/products/{id}", artifact="product"),
    RouteBinding(method="POST", path="/orders", artifact="order"),
)


def register_routes(
    app: FastAPI,
    settings: Settings,
    bindings: Tuple[RouteBinding, ...] = ROUTE_BINDINGS,
) -> List[str]:
    """
    Mounts health, echo, every route binding and finally the catch-all.

    The catch-all must be registered last: Starlette tries routes in order,
    and a known path with an unbound method also ends up in the fallback.
    Returns the registered route descriptions for startup logging.
    """
    store = ArtifactStore(settings.responses_dir)
    registered: List[str] = []

    app.add_api_route(
        "/health", health_handler(settings.server_name), methods=["GET"]
    )
    registered.append("GET /health")
    app.add_route("/echo", AnyMethodEndpoint(echo_handler(settings.server_name)))
    registered.append("ANY /echo")

    for binding in bindings:
        if binding.method == "DELETE" or binding.artifact is None:
            endpoint = delete_handler(settings.server_name)
        else:
            endpoint = artifact_handler(
                binding.method, binding.artifact, store, settings.server_name
            )
        app.add_api_route(binding.path, endpoint, methods=[binding.method])
        target = binding.artifact or "<no content>"
        registered.append(f"{binding.method} {binding.path} -> {target}")
        logger.debug(
            f"Registered route {binding.method} {binding.path} -> {target} (path parameter: {binding.param})"
        )

    app.add_route(
        "/{full_path:path}",
        AnyMethodEndpoint(fallback_handler(settings.server_name)),
        include_in_schema=False,
    )
    registered.append("ANY /* (fallback)")
    return registered
