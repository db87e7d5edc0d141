# tests/conftest.py

import zipfile
from io import BytesIO

import pytest
from fastapi.testclient import TestClient

from aquatron import config, schemas
from aquatron.main import app
from aquatron.services import user_store
from aquatron.utils import excel_codec


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Exports and the users file live in a per-test temp dir."""
    monkeypatch.setattr(config, "EXPORT_DIR", tmp_path / "exports")
    monkeypatch.setattr(config, "USERS_FILE", tmp_path / "users.json")
    return tmp_path


@pytest.fixture
def snapshot() -> schemas.ConfigSnapshot:
    return schemas.ConfigSnapshot(
        device_settings=schemas.DeviceSettings(freefall=500, hptf=2000, harmonic=1, duration_ms=5000),
        vout_table=[
            schemas.VoutEntry(symbol="Li", vout_base=2.5, freq=100),
            schemas.VoutEntry(symbol="Fe", vout_base=4, freq=250),
        ],
        stp_data=[
            schemas.TestParameter(symbol="Li", name="Lithium", quantity=10, vout_base=2.5, freq=100),
            schemas.TestParameter(symbol="Fe", quantity=5),
        ],
    )


@pytest.fixture
def make_xlsx():
    """Builds an in-memory xlsx from a {sheet: rows} mapping."""

    def _make(sheets):
        return excel_codec.to_bytes(excel_codec.build_container(sheets))

    return _make


@pytest.fixture
def malformed_xlsx() -> bytes:
    """A zip archive whose [Content_Types].xml is not well-formed XML."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types><not-closed>")
    return buffer.getvalue()


def _authed_client(username: str, password: str, role: str) -> TestClient:
    user_store.save_user(username, password, role)
    bootstrap_client = TestClient(app)
    login_resp = bootstrap_client.post("/auth/login", json={"username": username, "password": password})
    assert login_resp.status_code == 200
    token = login_resp.json()["access_token"]

    class AuthedClient(TestClient):
        def __init__(self, application, token):
            super().__init__(application)
            self._token = token

        def request(self, method, url, **kwargs):  # type: ignore[override]
            headers = kwargs.pop("headers", {}) or {}
            if "Authorization" not in headers:
                headers["Authorization"] = f"Bearer {self._token}"
            return super().request(method, url, headers=headers, **kwargs)

    return AuthedClient(app, token)


@pytest.fixture
def client():
    """TestClient carrying an admin bearer token."""
    return _authed_client("admin_master", "adminpass", "admin")


@pytest.fixture
def user_client():
    return _authed_client("operator", "operatorpass", "user")
