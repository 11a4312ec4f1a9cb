"""
PDM Access Control

Privilege and ACL evaluation engine for the datacenter manager daemon.
"""

__version__ = "0.1.0"

from .core import (
    AccessControl,
    AclEntry,
    AclStore,
    Decision,
    ObjectPath,
    PermissionEvaluator,
    PrivilegeRegistry,
    RoleRegistry,
)
from .core.bootstrap import build_access_control

__all__ = [
    "AccessControl",
    "AclEntry",
    "AclStore",
    "Decision",
    "ObjectPath",
    "PermissionEvaluator",
    "PrivilegeRegistry",
    "RoleRegistry",
    "build_access_control",
]
