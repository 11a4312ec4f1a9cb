"""
Data layer for the access-control engine.

Contains persistence models and repositories for the ACL table.
"""

from .models import AclChange, AclEntryRecord
from .repos import AclRepository, InMemoryAclRepository, JsonFileAclRepository

__all__ = [
    "AclChange",
    "AclEntryRecord",
    "AclRepository",
    "InMemoryAclRepository",
    "JsonFileAclRepository",
]
