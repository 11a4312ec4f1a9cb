"""Data models for ACL persistence."""

from .acl import AclChange, AclEntryRecord

__all__ = [
    "AclChange",
    "AclEntryRecord",
]
