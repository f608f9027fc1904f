from unittest.mock import AsyncMock

import pytest

from clinic_sessions.service import SessionService

from helpers.clinic import seed_clinic
from helpers.mock_repo import MockReferenceRepository, MockSessionRepository


@pytest.fixture
def refs():
    """Fresh reference store for each test."""
    return MockReferenceRepository()


@pytest.fixture
def repo(refs):
    """Fresh session store bound to the reference store."""
    return MockSessionRepository(refs)


@pytest.fixture
def clinic(refs):
    return seed_clinic(refs)


@pytest.fixture
def service(refs, repo):
    """SessionService with both repositories mocked."""
    svc = SessionService()
    svc._repo = repo
    svc._refs = refs
    return svc


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession; flush/commit are no-ops."""
    return AsyncMock()
