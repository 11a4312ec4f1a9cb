"""Persistence repositories for the ACL table."""

from .base import AclRepository, InMemoryAclRepository
from .file import JsonFileAclRepository

__all__ = [
    "AclRepository",
    "InMemoryAclRepository",
    "JsonFileAclRepository",
]
