import os

# The repository builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import pytest
from fastapi.testclient import TestClient

import repo
from main import app


@pytest.fixture(autouse=True)
def fresh_db():
    repo.Base.metadata.drop_all(repo.engine)
    repo.init_db()
    yield


@pytest.fixture
def client():
    return TestClient(app)
