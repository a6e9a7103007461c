"""Фикстуры для тестов API.

Тесты идут на временной SQLite (aiosqlite): DATABASE_URL задаётся до импорта
приложения, чтобы движок не смотрел в прод-Postgres.
"""
import os
import tempfile

import pytest
from fastapi.testclient import TestClient

_TMP_DIR = tempfile.mkdtemp(prefix="salon_pos_tests_")
TEST_DB_PATH = os.path.join(_TMP_DIR, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ.setdefault("SUPERUSER_LOGIN", "admin")
os.environ.setdefault("SUPERUSER_PASSWORD", "admin1234")

SUPERUSER_LOGIN = os.environ["SUPERUSER_LOGIN"]
SUPERUSER_PASSWORD = os.environ["SUPERUSER_PASSWORD"]


@pytest.fixture
def client():
    """Тестовый клиент на чистой БД: lifespan создаёт таблицы и админа."""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    from salon_pos.main import app
    with TestClient(app) as c:
        yield c


def login(client, username, password):
    r = client.post("/auth/login", data={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth_headers(client):
    """Заголовок Authorization суперпользователя."""
    return login(client, SUPERUSER_LOGIN, SUPERUSER_PASSWORD)


@pytest.fixture
def branch_id(client, auth_headers):
    r = client.post("/branches", json={"name": "Centro"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    return r.json()["id"]


@pytest.fixture
def make_employee(client, auth_headers):
    """Создать сотрудника с ролью и вернуть его заголовок авторизации."""
    def _make(role, login_name, branch=None, password="secret123"):
        r = client.post(
            "/employees",
            json={
                "name": login_name.title(),
                "role": role,
                "login": login_name,
                "password": password,
                "branch_id": branch,
            },
            headers=auth_headers,
        )
        assert r.status_code == 200, r.text
        return login(client, login_name, password)
    return _make
