from __future__ import annotations

import io
import urllib.error
import urllib.request
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient

from opreg.client import RegistryClient
from opreg.crypto.sig import generate_keypair
from opreg.runtime.errors import RegistryError
from opreg.runtime.kv_store import MemoryKVStore
from opreg.runtime.registry import Registry

OP_PRIV, OP_PUB = generate_keypair()


class _Resp:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_Resp":
        return self

    def __exit__(self, *exc) -> None:
        return None


@pytest.fixture()
def http(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Route the client's urllib calls into an in-process app."""
    from opreg.api import app as api_app

    store = MemoryKVStore()
    monkeypatch.setattr(api_app, "build_registry", lambda: Registry(operator=OP_PUB, store=store))
    tc = TestClient(api_app.create_app())

    def _urlopen(req: urllib.request.Request, timeout: float = 0):
        path = urlparse(req.full_url).path
        r = tc.post(path, content=req.data, headers=dict(req.header_items()))
        if r.status_code >= 400:
            raise urllib.error.HTTPError(req.full_url, r.status_code, "error", {}, io.BytesIO(r.content))
        return _Resp(r.content)

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    return tc


def test_operator_client_round_trip(http: TestClient) -> None:
    c = RegistryClient("http://registry.local/", privkey=OP_PRIV)
    assert c.caller == OP_PUB
    assert c.base_url == "http://registry.local"

    assert c.get_account("alice") is None
    c.set_account("alice", "addr1")
    assert c.get_account("alice") == "addr1"


def test_non_operator_client_raises_unauthorized(http: TestClient) -> None:
    priv, _ = generate_keypair()
    c = RegistryClient("http://registry.local", privkey=priv)

    with pytest.raises(RegistryError) as ei:
        c.set_account("alice", "addr2")
    assert ei.value.code == "unauthorized"

    assert RegistryClient("http://registry.local", privkey=OP_PRIV).get_account("alice") is None


def test_server_error_codes_are_surfaced(http: TestClient) -> None:
    c = RegistryClient("http://registry.local", privkey=OP_PRIV)
    with pytest.raises(RegistryError) as ei:
        c.call("enumerateAccounts")
    assert ei.value.code == "unknown_function"
    assert ei.value.details["function"] == "enumerateAccounts"
