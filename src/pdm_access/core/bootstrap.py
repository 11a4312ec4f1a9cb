"""
Bootstrap for the access-control engine.

Builds registries, persistence and the AccessControl facade from an
AccessConfig, then loads the ACL table. Configuration integrity errors
(unknown privileges in roles or supersets) are fatal here, at startup,
never at evaluation time.
"""

import logging
from typing import Dict, List, Optional

from ..config.schema import AccessConfig
from ..data.repos import AclRepository, InMemoryAclRepository, JsonFileAclRepository
from .acl import AclEntry
from .authorization import AccessControl
from .errors import UnknownPrivilege
from .identity import GroupResolver, StaticGroupResolver
from .privileges import BUILTIN_PRIVILEGES, NS_ACCESS, NS_RESOURCE, NS_SYSTEM, Privilege, PrivilegeRegistry
from .roles import RoleRegistry

logger = logging.getLogger(__name__)

# Name prefix -> namespace, for configured privileges that omit a namespace
_NAMESPACE_PREFIXES = {
    "System.": NS_SYSTEM,
    "Resource.": NS_RESOURCE,
    "Access.": NS_ACCESS,
    "Realm.": NS_ACCESS,
}


def namespace_for(name: str) -> str:
    for prefix, namespace in _NAMESPACE_PREFIXES.items():
        if name.startswith(prefix):
            return namespace
    raise ValueError(f"Cannot infer namespace for privilege {name}; set it explicitly")


def build_privilege_registry(config: AccessConfig) -> PrivilegeRegistry:
    """
    Built-in privileges plus those declared in configuration.

    Raises:
        UnknownPrivilege: if a superset relation names an undefined privilege
    """
    builtin = {p.name for p in BUILTIN_PRIVILEGES}
    configured = {p.name for p in config.privileges}

    extensions: List[Privilege] = []
    for item in config.privileges:
        namespace = item.namespace
        if not namespace and item.name not in builtin:
            namespace = namespace_for(item.name)
        extensions.append(Privilege(
            name=item.name,
            namespace=namespace,
            description=item.description,
            implies=frozenset(item.implies),
        ))

    # Superset edges go last so they merge into already-defined privileges
    for item in config.privileges:
        for superset in item.implied_by:
            if superset not in builtin and superset not in configured:
                logger.error(f"Privilege {item.name} is implied by unknown privilege {superset}")
                raise UnknownPrivilege(superset)
            extensions.append(Privilege(
                name=superset,
                namespace="",
                implies=frozenset({item.name}),
            ))

    registry = PrivilegeRegistry.with_extensions(extensions)
    if extensions:
        logger.info(f"Privilege registry extended by configuration: {sorted(configured)}")
    return registry


def build_role_registry(config: AccessConfig, privileges: PrivilegeRegistry) -> RoleRegistry:
    """
    Built-in roles plus those declared in configuration.

    Raises:
        UnknownPrivilege: if a configured role references an undefined privilege
    """
    extra: Dict[str, List[str]] = {role.name: role.privileges for role in config.roles}
    descriptions = {role.name: role.description for role in config.roles if role.description}
    return RoleRegistry(privileges, extra_roles=extra, descriptions=descriptions)


def build_repository(config: AccessConfig) -> AclRepository:
    storage_type = config.storage.type
    if storage_type == "json":
        return JsonFileAclRepository(config.storage_path())
    if storage_type == "memory":
        return InMemoryAclRepository()
    raise ValueError(f"Unsupported ACL storage type: {storage_type}")


def build_access_control(
    config: Optional[AccessConfig] = None,
    repository: Optional[AclRepository] = None,
    groups: Optional[GroupResolver] = None,
    load: bool = True,
) -> AccessControl:
    """
    Build a ready-to-use AccessControl facade.

    Args:
        config: Access configuration (default: built-in defaults)
        repository: Persistence collaborator (default: from config.storage)
        groups: Group resolver (default: static groups from config)
        load: Whether to load the ACL table immediately

    Returns:
        AccessControl instance
    """
    if config is None:
        config = AccessConfig()

    privileges = build_privilege_registry(config)
    roles = build_role_registry(config, privileges)

    if repository is None:
        repository = build_repository(config)
    if groups is None:
        groups = StaticGroupResolver(config.groups)

    bootstrap_entries = [
        AclEntry.create(e.path, e.subject, e.role, e.propagate)
        for e in config.bootstrap_acl
    ]

    access = AccessControl(
        privileges,
        roles,
        repository=repository,
        groups=groups,
        cache_enabled=config.cache_enabled,
        bootstrap_entries=bootstrap_entries,
    )

    if load:
        access.load()

    return access
