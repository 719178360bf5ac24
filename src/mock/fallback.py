from fastapi import Request
from fastapi.responses import JSONResponse, Response

from src.logging import logger
from src.mock.dispatcher import Endpoint, standard_headers, timestamp
from src.mock.metrics import record_unmatched_request

FALLBACK_MESSAGE = "Request logged successfully - no specific handler for this endpoint"


def fallback_handler(server_name: str) -> Endpoint:
    """
    Creates the catch-all endpoint for requests no route binding matches.

    Unmatched routes are routine for a mock server, so the answer is a 200
    acknowledgment describing the request rather than a 404.
    """

    async def catch_all(request: Request) -> Response:
        logger.warning(f"No route for {request.method} {request.url.path}, using fallback")
        record_unmatched_request(request.method)
        return JSONResponse(
            content={
                "message": FALLBACK_MESSAGE,
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params),
                "timestamp": timestamp(),
            },
            headers=standard_headers(server_name),
        )

    return catch_all
