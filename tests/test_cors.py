from typing import Callable, Optional

import pytest
from httpx import AsyncClient

from src.mock.cors import (
    ALLOWED_METHODS,
    DEFAULT_ALLOWED_HEADERS,
    EXPOSED_HEADERS,
    OriginDecision,
    OriginPolicy,
    cors_headers,
    evaluate_origin,
)

FOO = "https://foo"
BAR = "https://bar"


@pytest.mark.parametrize(
    "origin, allowed, credentials, expected",
    [
        (FOO, "", True, OriginDecision(FOO, allow_credentials=True, vary_origin=True)),
        (FOO, "", False, OriginDecision("*")),
        (FOO, FOO, True, OriginDecision(FOO, allow_credentials=True, vary_origin=True)),
        (FOO, FOO, False, OriginDecision(FOO, vary_origin=True)),
        (BAR, FOO, True, OriginDecision()),
        (BAR, FOO, False, OriginDecision()),
        (None, "", False, OriginDecision("*")),
        (None, "", True, OriginDecision()),
        (None, FOO, False, OriginDecision()),
        (None, FOO, True, OriginDecision()),
        ("", "", True, OriginDecision()),
        (BAR, " ", True, OriginDecision()),
        (BAR, ",", False, OriginDecision()),
        (None, ",", False, OriginDecision()),
    ],
)
def test_origin_policy_table(
    origin: Optional[str], allowed: str, credentials: bool, expected: OriginDecision
) -> None:
    policy = OriginPolicy.from_csv(allowed, credentials)
    assert evaluate_origin(origin, policy) == expected


def test_allow_list_membership_is_exact() -> None:
    policy = OriginPolicy.from_csv("https://foo.com, https://bar.com", False)
    assert policy.allowed_origins == ("https://foo.com", "https://bar.com")
    assert evaluate_origin("https://bar.com", policy).allow_origin == "https://bar.com"
    assert not evaluate_origin("https://sub.foo.com", policy).allowed
    assert not evaluate_origin("https://foo.com/", policy).allowed
    assert not evaluate_origin("http://foo.com", policy).allowed


def test_fixed_headers_always_present() -> None:
    policy = OriginPolicy.from_csv(FOO, False)
    headers = cors_headers(BAR, None, policy)
    assert "Access-Control-Allow-Origin" not in headers
    assert headers["Access-Control-Allow-Methods"] == ALLOWED_METHODS
    assert headers["Access-Control-Expose-Headers"] == EXPOSED_HEADERS
    assert headers["Access-Control-Allow-Headers"] == DEFAULT_ALLOWED_HEADERS


def test_requested_headers_are_echoed() -> None:
    headers = cors_headers(FOO, "X-Custom, Content-Type", OriginPolicy())
    assert headers["Access-Control-Allow-Headers"] == "X-Custom, Content-Type"


@pytest.mark.asyncio
async def test_wildcard_without_credentials(async_client: AsyncClient) -> None:
    response = await async_client.get("/users", headers={"Origin": FOO})
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in response.headers


@pytest.mark.asyncio
async def test_listed_origin_with_credentials(
    make_client: Callable[..., AsyncClient],
) -> None:
    client = make_client(allowed_origins=FOO, allow_credentials=True)
    response = await client.get("/products", headers={"Origin": FOO})
    assert response.headers["access-control-allow-origin"] == FOO
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "Origin" in response.headers["vary"]


@pytest.mark.asyncio
async def test_unlisted_origin_gets_no_allow_origin(
    make_client: Callable[..., AsyncClient],
) -> None:
    client = make_client(allowed_origins=FOO)
    response = await client.get("/products", headers={"Origin": BAR})
    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers
    assert response.headers["access-control-allow-methods"] == ALLOWED_METHODS


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/users", "/users/7", "/does/not/exist", "/echo"])
async def test_preflight_short_circuits(async_client: AsyncClient, path: str) -> None:
    response = await async_client.options(
        path,
        headers={
            "Origin": FOO,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "X-Trace-Id",
        },
    )
    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == "X-Trace-Id"


@pytest.mark.asyncio
async def test_preflight_is_not_recorded(
    async_client: AsyncClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level("INFO", logger="dummy_logger")
    await async_client.options("/users", headers={"Origin": FOO})
    assert "=== Incoming Request ===" not in caplog.text


@pytest.mark.asyncio
async def test_blank_allow_list_blocks_credentialed_origins(
    make_client: Callable[..., AsyncClient],
) -> None:
    client = make_client(allowed_origins=" , ", allow_credentials=True)
    response = await client.get("/users", headers={"Origin": BAR})
    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers
    assert "access-control-allow-credentials" not in response.headers
