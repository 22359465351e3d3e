from __future__ import annotations

import sqlite3
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from ddx_survey.config import settings
from ddx_survey.database import get_connection
from ddx_survey.db_init import init_database
from ddx_survey.db_queries import create_vignette, save_llm_output
from tests.factories import ADMIN_PASSWORD, sample_diagnoses


@pytest.fixture(autouse=True)
def db_path(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Every test gets its own empty SQLite database."""
    path = tmp_path / "study.db"
    monkeypatch.setattr(settings, "database_path", str(path))
    monkeypatch.setattr(settings, "admin_password", ADMIN_PASSWORD)
    monkeypatch.setattr(settings, "secret_key", "test-secret")
    monkeypatch.setattr(settings, "llm_provider", "openrouter")
    monkeypatch.setattr(settings, "openrouter_api_key", "")
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    init_database()
    return path


@pytest.fixture()
def conn(db_path) -> Iterator[sqlite3.Connection]:
    connection = get_connection()
    yield connection
    connection.close()


@pytest.fixture()
def make_vignettes(conn: sqlite3.Connection) -> Callable[..., list[int]]:
    """Create vignettes; one category keeps display order equal to id order."""

    def _make(count: int, category: str = "common", with_outputs: bool = True) -> list[int]:
        ids = []
        for i in range(count):
            vignette_id = create_vignette(conn, category, f"P{i}", f"Vignette text {i}")
            if with_outputs:
                save_llm_output(conn, vignette_id, sample_diagnoses(), "test-model", 0.1)
            ids.append(vignette_id)
        conn.commit()
        return ids

    return _make


@pytest.fixture()
def client(db_path) -> Iterator[TestClient]:
    from ddx_survey.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    response = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client
