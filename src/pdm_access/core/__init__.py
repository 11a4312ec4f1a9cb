"""
Access-control core.

- Paths: hierarchical object identifiers and their ancestor chains
- Privileges / Roles: static catalogues, validated at startup
- ACL Store: path -> entries, lock-free reads
- Evaluator: closest-wins resolution with propagate gating
- AccessControl: the facade the API layer talks to
"""

from .errors import (
    AccessControlError,
    DigestMismatch,
    InvalidPath,
    LockoutError,
    PermissionDenied,
    PersistenceFailure,
    UnknownPrivilege,
    UnknownRole,
)
from .paths import ACL_PATH, ObjectPath, ancestors, normalize
from .privileges import Privilege, PrivilegeRegistry
from .roles import Role, RoleRegistry
from .acl import AclEntry, AclSnapshot, AclStore, ChangeOp
from .identity import GroupResolver, StaticGroupResolver
from .evaluator import Decision, PermissionEvaluator
from .authorization import AccessControl

__all__ = [
    "AccessControlError",
    "DigestMismatch",
    "InvalidPath",
    "LockoutError",
    "PermissionDenied",
    "PersistenceFailure",
    "UnknownPrivilege",
    "UnknownRole",
    "ACL_PATH",
    "ObjectPath",
    "ancestors",
    "normalize",
    "Privilege",
    "PrivilegeRegistry",
    "Role",
    "RoleRegistry",
    "AclEntry",
    "AclSnapshot",
    "AclStore",
    "ChangeOp",
    "GroupResolver",
    "StaticGroupResolver",
    "Decision",
    "PermissionEvaluator",
    "AccessControl",
]
