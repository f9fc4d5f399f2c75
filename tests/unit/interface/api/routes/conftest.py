"""Fixtures for API route tests."""

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from passage.interface.api.app import create_app
from tests.di import build_test_container


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Client for an app wired to the mocked container.

    Entering the client runs the lifespan, which starts the session machine.
    """
    app = create_app(build_test_container())
    with TestClient(app) as test_client:
        yield test_client
