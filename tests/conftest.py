"""Pytest configuration and shared fixtures."""

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from approvalflow.core.approval.module_sync import ModuleStatusRegistry
from approvalflow.db.base import Base
from approvalflow.db.session import create_db_engine
import approvalflow.db.models  # noqa: F401


class RecordingHandler:
    """Module status handler that records every outcome it receives."""

    def __init__(self):
        self.calls = []

    def __call__(self, module_id, outcome):
        self.calls.append((module_id, outcome))


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def module_handlers():
    """One recording handler per built-in module type."""
    return {
        "risk_assessment": RecordingHandler(),
        "system_registration": RecordingHandler(),
        "document": RecordingHandler(),
        "training": RecordingHandler(),
    }


@pytest.fixture
def registry(module_handlers):
    registry = ModuleStatusRegistry()
    for module_type, handler in module_handlers.items():
        registry.register(module_type, handler)
    return registry


@pytest.fixture
def service(db_session, registry):
    from approvalflow.core.approval.service import ApprovalService
    return ApprovalService(db_session, registry=registry)


@pytest.fixture
def client(db_session, registry):
    """FastAPI test client bound to the test database."""
    from fastapi.testclient import TestClient

    from approvalflow.api.deps import get_db, get_module_registry
    from approvalflow.api.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_module_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
