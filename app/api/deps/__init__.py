"""API dependencies - re-exports from submodules."""

from .auth import (
    CurrentUser,
    DbSession,
    get_current_user,
    get_jwks,
    get_signing_key,
    security,
)
from .workspace import (
    WorkspaceContext,
    get_workspace_by_slug,
    require_workspace_admin,
    require_workspace_member,
)

__all__ = [
    # Auth
    "security",
    "get_jwks",
    "get_signing_key",
    "get_current_user",
    "DbSession",
    "CurrentUser",
    # Workspace
    "WorkspaceContext",
    "get_workspace_by_slug",
    "require_workspace_member",
    "require_workspace_admin",
]
