"""Role hierarchy constants and utilities for workspace member roles."""

from app.models.workspace import WorkspaceRole

# Hierarchy levels for workspace roles (higher = more privileges)
ROLE_HIERARCHY: dict[str, int] = {
    WorkspaceRole.PARTICIPANT.value: 0,
    WorkspaceRole.MANAGER.value: 1,
    WorkspaceRole.ADMIN.value: 2,
}


def get_role_level(role: str | None) -> int:
    """Get the hierarchy level for a role string. Unknown roles rank lowest."""
    if role is None:
        return -1
    return ROLE_HIERARCHY.get(role, 0)


def has_minimum_role(user_role: str | None, required_role: WorkspaceRole) -> bool:
    """Check if a user's role meets or exceeds the required role level."""
    return get_role_level(user_role) >= get_role_level(required_role.value)
