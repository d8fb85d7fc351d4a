"""Application-level fixtures: the wired app and a test client."""

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.federation.api.http.app import create_app
from src.federation.api.http.app_data import ApplicationDependencies
from src.federation.runtime.config.config_data import ConfigData


@pytest.fixture
def app(test_config: ConfigData) -> FastAPI:
    return create_app(test_config)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient]:
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def app_deps(app: FastAPI, client: TestClient) -> ApplicationDependencies:
    return app.state.app_dependencies
