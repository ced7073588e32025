import os

# Settings are read at import time; keep the default engine off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JOB_QUEUE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flowhub.core.db.deps import get_db
from flowhub.core.db.session import Base
from flowhub.core.execution.engine import ExecutionEngine
from flowhub.core.flows.service import FlowService
from flowhub.core.integrations import ConnectorRegistry, EngineHooks, StaticCredentialVault
from flowhub.core.integrations.connectors import register_builtin_connectors
from flowhub.core.jobs.queue import InMemoryJobQueue
from flowhub.core.triggers.engine import TriggerEngine
from flowhub.main import app
from flowhub.models import (  # noqa: F401
    Flow,
    FlowEdge,
    FlowExecution,
    FlowNode,
    FlowStepExecution,
    FlowVersion,
    TriggerEvent,
    TriggerSubscription,
)
from tests.helpers import FakePollingTrigger, RecordingAction, ScriptedAction

TEST_DATABASE_URL = "sqlite://"


def create_test_engine():
    """Create an in-memory SQLite engine shared by every session of a test."""
    return create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh schema for each test."""
    engine = create_test_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a database session for a test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def record_action():
    return RecordingAction()


@pytest.fixture
def scripted_action():
    return ScriptedAction()


@pytest.fixture
def polling_trigger():
    return FakePollingTrigger()


@pytest.fixture
def registry(record_action, scripted_action, polling_trigger):
    """Create a registry with the built-in connectors plus test doubles."""
    registry = register_builtin_connectors(ConnectorRegistry())
    registry.register_action("test", "record", record_action)
    registry.register_action("test", "scripted", scripted_action)
    registry.register_trigger("test", "poll", polling_trigger)
    return registry


@pytest.fixture
def vault():
    return StaticCredentialVault({"conn-1": {"token": "secret-token"}})


@pytest.fixture
def queue():
    return InMemoryJobQueue()


@pytest.fixture
def hooks():
    return EngineHooks()


@pytest.fixture
def trigger_engine(db_session, registry, vault, queue, hooks):
    """Create TriggerEngine instance."""
    return TriggerEngine(db_session, registry, vault, queue, hooks)


@pytest.fixture
def execution_engine(db_session, registry, vault, queue, hooks):
    """Create ExecutionEngine instance."""
    return ExecutionEngine(db_session, registry, vault, queue, hooks)


@pytest.fixture
def flow_service(db_session, trigger_engine, hooks):
    """Create FlowService instance."""
    return FlowService(db_session, trigger_engine, hooks)


@pytest.fixture(scope="function")
def client(db_session, registry, vault, queue, hooks):
    """Create a test client sharing the test session and engine collaborators."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    previous_state = {name: getattr(app.state, name) for name in ("registry", "vault", "queue", "hooks")}
    app.state.registry = registry
    app.state.vault = vault
    app.state.queue = queue
    app.state.hooks = hooks
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    for name, value in previous_state.items():
        setattr(app.state, name, value)
