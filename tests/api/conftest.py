"""API test fixtures — in-process ASGI client with dependency overrides.

The database session is an AsyncMock; route handlers reach the domain
layer through patched singletons. Workspace access is resolved by
overriding require_workspace_member / require_workspace_admin with a
context built per test.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps.workspace import (
    WorkspaceContext,
    require_workspace_admin,
    require_workspace_member,
)
from app.core.database import get_db
from app.core.exceptions import AuthorizationError
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMembership

from tests.helpers.mock_factories import make_mock_db


@pytest.fixture
def mock_db():
    return make_mock_db()


@pytest.fixture
def test_workspace() -> Workspace:
    return Workspace(
        id=uuid.uuid4(),
        name="__test_workspace",
        slug=f"test-{uuid.uuid4().hex[:8]}",
        rewardstack_enabled=True,
    )


@pytest.fixture
def test_user() -> User:
    return User(
        id=uuid.uuid4(),
        email=f"__test_{uuid.uuid4().hex[:8]}@example.com",
        display_name="Test User",
        created_at=datetime.now(UTC),
    )


def _membership(workspace: Workspace, user: User, role: str) -> WorkspaceMembership:
    return WorkspaceMembership(workspace_id=workspace.id, user_id=user.id, role=role)


@pytest.fixture
def as_role(test_workspace, test_user):
    """Factory: build the WorkspaceContext the overridden dependencies return."""

    def _build(role: str | None) -> WorkspaceContext:
        membership = _membership(test_workspace, test_user, role) if role else None
        return WorkspaceContext(workspace=test_workspace, user=test_user, membership=membership)

    return _build


def _client_for(context: WorkspaceContext | None, db):
    from app.main import app

    async def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db

    if context is not None:

        def member() -> WorkspaceContext:
            return context

        def admin() -> WorkspaceContext:
            if not context.is_admin:
                raise AuthorizationError("Workspace admin access required")
            return context

        app.dependency_overrides[require_workspace_member] = member
        app.dependency_overrides[require_workspace_admin] = admin

    transport = ASGITransport(app=app)
    return app, AsyncClient(transport=transport, base_url="http://test", follow_redirects=True)


@pytest.fixture
async def api_client(mock_db):
    """Unauthenticated client (partner webhook calls)."""
    app, client = _client_for(None, mock_db)
    async with client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def client_as(mock_db, as_role):
    """Factory fixture: `async with client_as("MANAGER") as client: ...`."""

    @asynccontextmanager
    async def _open(role: str | None):
        app, client = _client_for(as_role(role), mock_db)
        try:
            async with client:
                yield client
        finally:
            app.dependency_overrides.clear()

    return _open
