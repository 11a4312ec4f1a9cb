"""
Access Control Configuration Module

Provides centralized configuration management for the access-control engine.
"""

from .schema import AccessConfig, AclEntryConfig, PrivilegeConfig, RoleConfig, StorageConfig
from .loader import create_default_config, load_config, load_config_from_file

__all__ = [
    "AccessConfig",
    "AclEntryConfig",
    "PrivilegeConfig",
    "RoleConfig",
    "StorageConfig",
    "create_default_config",
    "load_config",
    "load_config_from_file",
]
