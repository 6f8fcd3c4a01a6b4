"""
Pytest configuration and shared fixtures.

Fixtures available to all tests:
  • store            - SessionStore backed by a temp file
  • fake_db          - in-memory FakeSupabase
  • primary/secondary - scripted StubPath instances
  • orchestrator     - FallbackOrchestrator over the two stubs
  • sample_issue     - a canonical issue row
"""

from __future__ import annotations

import os
import sys

import pytest

# Ensure the project root is on the path so civic_hub and tests.fakes resolve.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from civic_hub.client.base import Path  # noqa: E402
from civic_hub.client.orchestrator import FallbackOrchestrator  # noqa: E402
from civic_hub.client.session_store import SessionStore  # noqa: E402
from tests.fakes import FakeSupabase, StubPath  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "session.json"))


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def primary():
    return StubPath(Path.PRIMARY)


@pytest.fixture
def secondary():
    return StubPath(Path.SECONDARY)


@pytest.fixture
def orchestrator(primary, secondary, store):
    return FallbackOrchestrator(primary, secondary, store)


@pytest.fixture
def sample_issue():
    return {
        "id": "issue-1",
        "user_id": "user-1",
        "title": "Broken streetlight",
        "description": "The streetlight on Elm Street has been out for a week.",
        "category": "Safety",
        "status": "pending",
        "priority": "medium",
        "upvotes": 3,
        "location_coordinates": "POINT(-74.006 40.7128)",
        "created_at": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture
def issue_fields():
    return {
        "title": "Pothole on Main Street",
        "description": "Large pothole near the bus stop, cars swerving.",
        "category": "Infrastructure",
        "priority": "high",
    }
