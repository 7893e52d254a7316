"""Role and ownership checks for service operations."""

from enum import Enum
from uuid import UUID

from src.logging.audit import AuditLogger
from src.models.user import Principal, UserRole
from src.services.errors import AuthorizationError


class Permission(str, Enum):
    """Permission types."""

    REVIEW_APPLICATIONS = "review_applications"
    MANAGE_LOCATIONS = "manage_locations"
    VIEW_REVENUE = "view_revenue"
    MANAGE_SUPPORT = "manage_support"
    VIEW_SUPPORT_COUNTS = "view_support_counts"


_GRANTS: dict[Permission, frozenset[UserRole]] = {
    Permission.REVIEW_APPLICATIONS: frozenset({UserRole.ADMIN}),
    Permission.MANAGE_LOCATIONS: frozenset({UserRole.ADMIN}),
    Permission.VIEW_REVENUE: frozenset({UserRole.ADMIN}),
    Permission.MANAGE_SUPPORT: frozenset({UserRole.SUPPORT}),
    Permission.VIEW_SUPPORT_COUNTS: frozenset({UserRole.SUPPORT, UserRole.ADMIN}),
}


class PermissionChecker:
    """Check principal permissions for actions."""

    def has(self, principal: Principal, permission: Permission) -> bool:
        """Check if the principal's role grants a permission."""
        return principal.role in _GRANTS[permission]

    def require(
        self,
        principal: Principal,
        permission: Permission,
        resource_type: str = "system",
        resource_id: UUID | str = "-",
    ) -> None:
        """Raise AuthorizationError (and audit it) unless the role grants the permission."""
        if self.has(principal, permission):
            return
        AuditLogger.log_permission_denied(
            actor_id=principal.id,
            resource_type=resource_type,
            resource_id=resource_id,
            attempted_action=permission.value,
        )
        raise AuthorizationError(permission.value, role=principal.role.value)

    def require_owner(
        self,
        principal: Principal,
        owner_id: int,
        resource_type: str,
        resource_id: UUID | str,
        action: str,
    ) -> None:
        """Raise AuthorizationError unless the principal owns the resource."""
        if principal.id == owner_id:
            return
        AuditLogger.log_permission_denied(
            actor_id=principal.id,
            resource_type=resource_type,
            resource_id=resource_id,
            attempted_action=action,
        )
        raise AuthorizationError(action, role=principal.role.value)
