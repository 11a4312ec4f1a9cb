"""
Role Registry

Roles are named, immutable, flat sets of privileges. They never reference
other roles. Built-in roles:

- Administrator:         every privilege
- Auditor:               every *.Audit privilege
- SystemAdministrator:   everything in /system
- SystemAuditor:         audit in /system
- ResourceAdministrator: everything in /resource
- ResourceAuditor:       audit in /resource
- AccessAuditor:         audit in /access
- NoAccess:              nothing (revokes an inherited grant)

Administrator always holds Access.Modify so permissions stay changeable.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

from .errors import UnknownPrivilege, UnknownRole
from .privileges import (
    ACCESS_MODIFY,
    NS_ACCESS,
    NS_RESOURCE,
    NS_SYSTEM,
    PrivilegeRegistry,
)

logger = logging.getLogger(__name__)

ROLE_ADMINISTRATOR = "Administrator"
ROLE_AUDITOR = "Auditor"
ROLE_SYSTEM_ADMINISTRATOR = "SystemAdministrator"
ROLE_SYSTEM_AUDITOR = "SystemAuditor"
ROLE_RESOURCE_ADMINISTRATOR = "ResourceAdministrator"
ROLE_RESOURCE_AUDITOR = "ResourceAuditor"
ROLE_ACCESS_AUDITOR = "AccessAuditor"
ROLE_NO_ACCESS = "NoAccess"


@dataclass(frozen=True)
class Role:
    """
    A named set of privileges.

    privileges: names as declared
    expanded:   declared privileges plus everything they imply
    """
    name: str
    privileges: FrozenSet[str]
    expanded: FrozenSet[str] = field(default_factory=frozenset)
    description: str = ""

    def grants(self, privilege: str) -> bool:
        return privilege in self.expanded


def builtin_role_definitions(privileges: PrivilegeRegistry) -> Dict[str, FrozenSet[str]]:
    """Privilege sets of the built-in roles, derived from the registry"""

    def names(items) -> FrozenSet[str]:
        return frozenset(p.name for p in items)

    def audit(namespace: str) -> FrozenSet[str]:
        return names(p for p in privileges.in_namespace(namespace) if p.is_audit)

    return {
        ROLE_ADMINISTRATOR: privileges.names(),
        ROLE_AUDITOR: names(privileges.audit_privileges()),
        ROLE_SYSTEM_ADMINISTRATOR: names(privileges.in_namespace(NS_SYSTEM)),
        ROLE_SYSTEM_AUDITOR: audit(NS_SYSTEM),
        ROLE_RESOURCE_ADMINISTRATOR: names(privileges.in_namespace(NS_RESOURCE)),
        ROLE_RESOURCE_AUDITOR: audit(NS_RESOURCE),
        ROLE_ACCESS_AUDITOR: audit(NS_ACCESS),
        ROLE_NO_ACCESS: frozenset(),
    }


class RoleRegistry:
    """
    Immutable catalogue of roles, keyed by name.

    Every privilege a role references is validated against the privilege
    registry at construction time, never at evaluation time.
    """

    def __init__(
        self,
        privileges: PrivilegeRegistry,
        extra_roles: Optional[Dict[str, Iterable[str]]] = None,
        descriptions: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize registry.

        Args:
            privileges: Privilege registry used for validation and expansion
            extra_roles: Additional role name -> privilege names
            descriptions: Optional role descriptions

        Raises:
            UnknownPrivilege: if a role references an undefined privilege
            ValueError: if a role would shadow a built-in role, or no role
                holds Access.Modify
        """
        self.privileges = privileges
        descriptions = descriptions or {}

        definitions = builtin_role_definitions(privileges)
        for name, role_privileges in (extra_roles or {}).items():
            if name in definitions:
                raise ValueError(f"Role {name} is built in and cannot be redefined")
            definitions[name] = frozenset(role_privileges)

        self._roles: Dict[str, Role] = {}
        for name, role_privileges in definitions.items():
            for privilege in role_privileges:
                if privilege not in privileges:
                    logger.error(f"Role {name} references unknown privilege {privilege}")
                    raise UnknownPrivilege(privilege)
            self._roles[name] = Role(
                name=name,
                privileges=role_privileges,
                expanded=privileges.expand(role_privileges),
                description=descriptions.get(name, ""),
            )

        if not any(role.grants(ACCESS_MODIFY) for role in self._roles.values()):
            raise ValueError(f"No role grants {ACCESS_MODIFY}; ACLs could never be changed")

        logger.debug(f"Role registry initialized with {len(self._roles)} roles")

    def lookup(self, name: str) -> Role:
        """
        Get a role by name.

        Raises:
            UnknownRole: if the role is not defined
        """
        try:
            return self._roles[name]
        except KeyError:
            raise UnknownRole(name) from None

    def privileges_of(self, name: str) -> FrozenSet[str]:
        """Expanded privilege set of a role"""
        return self.lookup(name).expanded

    def __contains__(self, name: str) -> bool:
        return name in self._roles

    def __iter__(self):
        return iter(self._roles.values())

    def __len__(self) -> int:
        return len(self._roles)
