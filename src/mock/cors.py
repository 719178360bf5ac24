from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import Response

from src.config import Settings
from src.logging import logger

ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
EXPOSED_HEADERS = "X-Served-By, X-Timestamp, Content-Length"
DEFAULT_ALLOWED_HEADERS = "Content-Type, Authorization, X-Requested-With, X-Api-Key, Accept"


@dataclass(frozen=True)
class OriginPolicy:
    """
    Static cross-origin configuration shared by every request.

    Only an unset (empty) allow-list means "allow all origins". A configured
    value that holds no usable entry, such as "," or " ", still restricts
    origins and therefore matches nothing. The policy is built once from
    settings and never mutated, so it is safe to share across concurrently
    handled requests.
    """

    allowed_origins: Tuple[str, ...] = ()
    allow_credentials: bool = False
    restricted: bool = False

    @classmethod
    def from_csv(cls, allowed_csv: str, allow_credentials: bool) -> "OriginPolicy":
        entries = tuple(
            entry.strip() for entry in allowed_csv.split(",") if entry.strip()
        )
        return cls(
            allowed_origins=entries,
            allow_credentials=allow_credentials,
            restricted=allowed_csv != "",
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "OriginPolicy":
        return cls.from_csv(settings.allowed_origins, settings.allow_credentials)

    @property
    def allows_all(self) -> bool:
        return not (self.restricted or self.allowed_origins)

    def is_listed(self, origin: str) -> bool:
        return origin in self.allowed_origins


@dataclass(frozen=True)
class OriginDecision:
    """Outcome of evaluating one request's Origin against the policy."""

    allow_origin: Optional[str] = None
    allow_credentials: bool = False
    vary_origin: bool = False

    @property
    def allowed(self) -> bool:
        return self.allow_origin is not None


BLOCKED = OriginDecision()


def evaluate_origin(origin: Optional[str], policy: OriginPolicy) -> OriginDecision:
    """
    Decides which Access-Control-Allow-* values apply to a request.

    Rules, first match wins:

    * origin present, allow-all, credentials on: echo the origin, allow credentials, vary on Origin
    * origin present, allow-all, credentials off: wildcard
    * origin present and listed: echo the origin, vary on Origin, allow credentials if enabled
    * origin present but not listed: nothing (the browser blocks the response)
    * no origin, allow-all, credentials off: wildcard
    * no origin otherwise: nothing

    An empty Origin header is treated as absent.
    """
    if origin:
        if policy.allows_all:
            if policy.allow_credentials:
                # Credentialed responses may not use the wildcard
                return OriginDecision(origin, allow_credentials=True, vary_origin=True)
            return OriginDecision("*")
        if policy.is_listed(origin):
            return OriginDecision(
                origin, allow_credentials=policy.allow_credentials, vary_origin=True
            )
        return BLOCKED

    if policy.allows_all and not policy.allow_credentials:
        return OriginDecision("*")
    return BLOCKED


def cors_headers(
    origin: Optional[str], requested_headers: Optional[str], policy: OriginPolicy
) -> Dict[str, str]:
    """
    Builds the full set of CORS response headers for a request.

    The method, expose and allow-headers entries are always present; the
    origin-dependent entries come from :func:`evaluate_origin`.
    """
    decision = evaluate_origin(origin, policy)
    headers: Dict[str, str] = {}
    if decision.allowed:
        headers["Access-Control-Allow-Origin"] = decision.allow_origin
    if decision.allow_credentials:
        headers["Access-Control-Allow-Credentials"] = "true"
    if decision.vary_origin:
        headers["Vary"] = "Origin"
    headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
    headers["Access-Control-Allow-Headers"] = requested_headers or DEFAULT_ALLOWED_HEADERS
    return headers


def _apply_headers(response: Response, headers: Dict[str, str]) -> None:
    for name, value in headers.items():
        if name == "Vary" and "vary" in response.headers:
            existing = [v.strip() for v in response.headers["vary"].split(",")]
            if value not in existing:
                response.headers["Vary"] = ", ".join(existing + [value])
            continue
        response.headers[name] = value


async def cors_middleware(
    request: Request,
    call_next: Callable[[Request], Any],
    policy: OriginPolicy,
) -> Response:
    """
    Applies the origin policy to every request and answers preflights.

    OPTIONS requests are terminated here with 204 and an empty body, whether
    or not the path exists; nothing downstream (recorder included) sees them.
    """
    origin = request.headers.get("origin")
    headers = cors_headers(
        origin, request.headers.get("access-control-request-headers"), policy
    )
    if origin and "Access-Control-Allow-Origin" not in headers:
        logger.debug(f"Origin not allowed, omitting Access-Control-Allow-Origin: {origin}")

    if request.method == "OPTIONS":
        logger.debug(f"Answering preflight for {request.url.path}")
        return Response(status_code=204, headers=headers)

    response = await call_next(request)
    _apply_headers(response, headers)
    return response
