from pathlib import Path
from typing import AsyncGenerator, Callable, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient

from src.config import Settings
from src.main import create_app

ARTIFACTS: Dict[str, bytes] = {
    "users": b'{"users": [{"id": "1", "name": "Alice"}], "total": 1}\n',
    "user": b'{\n  "id": "1",\n  "name": "Alice"\n}\n',
    "products": b'{"products": [{"id": "p-1", "name": "Keyboard"}]}\n',
    "product": b'{"id": "p-1", "name": "Keyboard", "price": 49.99}\n',
    "order": b'{"id": "o-1", "status": "pending"}\n',
}


@pytest.fixture
def artifacts() -> Dict[str, bytes]:
    return dict(ARTIFACTS)


@pytest.fixture
def responses_dir(tmp_path: Path, artifacts: Dict[str, bytes]) -> Path:
    for name, content in artifacts.items():
        (tmp_path / f"{name}.json").write_bytes(content)
    return tmp_path


@pytest.fixture
def make_settings(responses_dir: Path) -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {
            "responses_dir": responses_dir,
            "allowed_origins": "",
            "allow_credentials": False,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
async def make_client(
    make_settings: Callable[..., Settings],
) -> AsyncGenerator[Callable[..., AsyncClient], None]:
    clients: List[AsyncClient] = []

    def _make(**overrides) -> AsyncClient:
        app = create_app(make_settings(**overrides))
        client = AsyncClient(
            transport=ASGITransport(app=app), base_url="http://testserver"
        )
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
async def async_client(
    make_client: Callable[..., AsyncClient],
) -> AsyncClient:
    return make_client()
