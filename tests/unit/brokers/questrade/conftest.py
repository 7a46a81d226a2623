"""Pytest fixtures for Questrade broker unit tests"""

import json
from pathlib import Path

import httpx
import pytest

from qwire.brokers.questrade import QuestradeClient
from tests.fakes import LOGIN_URL, FakeQuestrade

_FIXTURE_CACHE: dict[str, dict] = {}


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Return path to test fixtures directory"""
    return Path(__file__).parent.parent.parent.parent / "fixtures"


@pytest.fixture(scope="session")
def load_fixture(fixtures_dir):
    """Helper to load JSON fixture files with caching.

    Session scope: Fixture loading is immutable and cached.
    """

    def _load(filename: str) -> dict:
        path = fixtures_dir / "questrade_responses" / filename
        key = str(path)
        if key not in _FIXTURE_CACHE:
            with open(path) as f:
                _FIXTURE_CACHE[key] = json.load(f)
        return _FIXTURE_CACHE[key]

    return _load


@pytest.fixture
def login_payload(load_fixture) -> dict:
    """Successful authorization server response"""
    return dict(load_fixture("login_success.json"))


@pytest.fixture
def fake_server(login_payload) -> FakeQuestrade:
    """Fake Questrade servers with a working login route"""
    server = FakeQuestrade()
    server.add(
        "POST",
        f"{LOGIN_URL}token",
        httpx.Response(200, json=login_payload),
    )
    return server


@pytest.fixture
def client(fake_server) -> QuestradeClient:
    """QuestradeClient wired to the fake servers (not logged in)"""
    return QuestradeClient("seed_refresh_token", transport=fake_server.transport)
