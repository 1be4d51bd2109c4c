# auth/permissions.py
"""
Role-based access control over a static role -> resource -> actions matrix.

The matrix is validated once when the evaluator is built, so a missing role
or an unknown resource/action stops the service at startup instead of
surfacing as a denied request later.
"""
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from ..core.exceptions import ConfigurationError
from .models import Action, Resource, Role

PermissionMatrix = Mapping[Role, Mapping[Resource, FrozenSet[Action]]]

DEFAULT_ROLE_PERMISSIONS: Dict[str, Dict[str, Iterable[str]]] = {
    # Full system control including infrastructure changes
    "admin": {
        "system": ["create", "read", "update", "delete"],
        "users": ["create", "read", "update", "delete"],
        "api_keys": ["create", "read", "update", "delete"],
        "logs": ["read", "delete"],
        "settings": ["create", "read", "update", "delete"],
        "analytics": ["read"],
    },
    # User management and monitoring only
    "moderator": {
        "users": ["read", "update"],
        "logs": ["read"],
        "analytics": ["read"],
    },
}


def build_permission_matrix(raw: Mapping[str, Mapping[str, Iterable[str]]]) -> PermissionMatrix:
    """Validate a plain mapping and freeze it into a permission matrix."""
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Permission matrix must be a mapping of role to resources")

    matrix: Dict[Role, Mapping[Resource, FrozenSet[Action]]] = {}
    for role_name, resources in raw.items():
        try:
            role = Role(role_name)
        except ValueError:
            raise ConfigurationError(f"Unknown role in permission matrix: {role_name!r}")
        if not isinstance(resources, Mapping):
            raise ConfigurationError(f"Permissions for role {role_name!r} must be a mapping")

        entries: Dict[Resource, FrozenSet[Action]] = {}
        for resource_name, actions in resources.items():
            try:
                resource = Resource(resource_name)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown resource {resource_name!r} for role {role_name!r}"
                )
            if isinstance(actions, (str, bytes)) or not isinstance(actions, Iterable):
                raise ConfigurationError(
                    f"Actions for {role_name!r}/{resource_name!r} must be a list"
                )
            try:
                entries[resource] = frozenset(Action(a) for a in actions)
            except ValueError as e:
                raise ConfigurationError(
                    f"Unknown action for {role_name!r}/{resource_name!r}: {e}"
                )
        matrix[role] = MappingProxyType(entries)

    missing = [role.value for role in Role if role not in matrix]
    if missing:
        raise ConfigurationError(
            f"Permission matrix has no mapping for roles: {', '.join(missing)}",
            context={"missing_roles": missing},
        )
    return MappingProxyType(matrix)


def load_permission_matrix(path: Union[str, Path]) -> PermissionMatrix:
    """Load and validate a JSON permission matrix file."""
    try:
        raw: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Could not read permission matrix {path}: {e}",
            context={"path": str(path)},
            original_exception=e,
        )
    return build_permission_matrix(raw)


class PermissionEvaluator:
    """Pure lookups over an immutable permission matrix."""

    def __init__(self, matrix: Optional[PermissionMatrix] = None):
        self._matrix = matrix if matrix is not None else build_permission_matrix(DEFAULT_ROLE_PERMISSIONS)

    def has_permission(self, role: Union[Role, str], resource: Union[Resource, str], action: Union[Action, str]) -> bool:
        try:
            role = Role(role)
            resource = Resource(resource)
            action = Action(action)
        except ValueError:
            return False
        entries = self._matrix.get(role)
        if entries is None:
            return False
        return action in entries.get(resource, frozenset())

    def permissions_for(self, role: Union[Role, str]) -> Mapping[Resource, FrozenSet[Action]]:
        try:
            return self._matrix.get(Role(role), MappingProxyType({}))
        except ValueError:
            return MappingProxyType({})

    def as_dict(self) -> Dict[str, Dict[str, list]]:
        """Plain, sorted representation for documentation and APIs."""
        return {
            role.value: {
                resource.value: sorted(a.value for a in actions)
                for resource, actions in entries.items()
            }
            for role, entries in self._matrix.items()
        }


__all__ = [
    'PermissionEvaluator', 'PermissionMatrix', 'DEFAULT_ROLE_PERMISSIONS',
    'build_permission_matrix', 'load_permission_matrix'
]
