"""
Privilege Registry

Static catalogue of privileges. Each privilege is scoped to the namespace
under which it is meaningful:

- /system:   System.Audit, System.Modify
- /resource: Resource.Audit, Resource.Modify, Resource.Create,
             Resource.Delete, Resource.Migrate, Resource.PowerMgmt
- /access:   Access.Audit, Access.Modify, Realm.Allocate

A privilege may be declared a superset of more specific ones, e.g.
Resource.Modify implying Resource.Guest.Modify. The superset relation is
expanded once at construction into a lookup table, so checks never do
string matching.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from .errors import UnknownPrivilege

logger = logging.getLogger(__name__)


# Privilege names
SYS_AUDIT = "System.Audit"
SYS_MODIFY = "System.Modify"
RESOURCE_AUDIT = "Resource.Audit"
RESOURCE_MODIFY = "Resource.Modify"
RESOURCE_CREATE = "Resource.Create"
RESOURCE_DELETE = "Resource.Delete"
RESOURCE_MIGRATE = "Resource.Migrate"
RESOURCE_POWER_MGMT = "Resource.PowerMgmt"
ACCESS_AUDIT = "Access.Audit"
ACCESS_MODIFY = "Access.Modify"
REALM_ALLOCATE = "Realm.Allocate"

# Namespaces
NS_SYSTEM = "/system"
NS_RESOURCE = "/resource"
NS_ACCESS = "/access"


@dataclass(frozen=True)
class Privilege:
    """
    An atomic named permission.

    implies: names of more specific privileges this one is a superset of
    """
    name: str
    namespace: str
    description: str = ""
    implies: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_audit(self) -> bool:
        return self.name.endswith(".Audit")


BUILTIN_PRIVILEGES: List[Privilege] = [
    Privilege(SYS_AUDIT, NS_SYSTEM, "View daemon configuration and status"),
    Privilege(SYS_MODIFY, NS_SYSTEM, "Change daemon configuration"),
    Privilege(RESOURCE_AUDIT, NS_RESOURCE, "View remotes and their resources"),
    Privilege(RESOURCE_MODIFY, NS_RESOURCE, "Change remotes and their resources"),
    Privilege(RESOURCE_CREATE, NS_RESOURCE, "Create resources on remotes"),
    Privilege(RESOURCE_DELETE, NS_RESOURCE, "Delete resources on remotes"),
    Privilege(RESOURCE_MIGRATE, NS_RESOURCE, "Migrate guests between nodes and remotes"),
    Privilege(RESOURCE_POWER_MGMT, NS_RESOURCE, "Start, stop and reboot guests"),
    Privilege(ACCESS_AUDIT, NS_ACCESS, "View users, realms and ACLs"),
    Privilege(ACCESS_MODIFY, NS_ACCESS, "Change users, realms and ACLs"),
    Privilege(REALM_ALLOCATE, NS_ACCESS, "Create and remove authentication realms"),
]


class PrivilegeRegistry:
    """
    Immutable catalogue of privileges.

    Supersets are resolved transitively at construction:
    satisfies("Resource.Modify") returns every privilege name a grant of
    Resource.Modify covers, itself included.
    """

    def __init__(self, privileges: Optional[Iterable[Privilege]] = None):
        """
        Initialize registry.

        Args:
            privileges: Privilege definitions (default: built-in privileges)

        Raises:
            UnknownPrivilege: if a superset names an undefined privilege
            ValueError: if a privilege is defined twice
        """
        if privileges is None:
            privileges = BUILTIN_PRIVILEGES

        self._privileges: Dict[str, Privilege] = {}
        for privilege in privileges:
            if privilege.name in self._privileges:
                raise ValueError(f"Duplicate privilege definition: {privilege.name}")
            self._privileges[privilege.name] = privilege

        for privilege in self._privileges.values():
            for implied in privilege.implies:
                if implied not in self._privileges:
                    raise UnknownPrivilege(implied)

        self._expansion: Dict[str, FrozenSet[str]] = {
            name: self._expand(name) for name in self._privileges
        }
        logger.debug(f"Privilege registry initialized with {len(self._privileges)} privileges")

    def _expand(self, name: str) -> FrozenSet[str]:
        """Transitive closure of the superset relation starting at name"""
        seen = set()
        pending = [name]
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self._privileges[current].implies)
        return frozenset(seen)

    @classmethod
    def with_extensions(cls, extra: Iterable[Privilege]) -> "PrivilegeRegistry":
        """
        Built-in privileges plus additional ones.

        An extension with the name of a built-in privilege is merged into it,
        which is how a built-in privilege gains new supersets.
        """
        merged: Dict[str, Privilege] = {p.name: p for p in BUILTIN_PRIVILEGES}
        for privilege in extra:
            existing = merged.get(privilege.name)
            if existing is not None:
                privilege = Privilege(
                    name=existing.name,
                    namespace=existing.namespace,
                    description=privilege.description or existing.description,
                    implies=existing.implies | privilege.implies,
                )
            merged[privilege.name] = privilege
        return cls(merged.values())

    def lookup(self, name: str) -> Privilege:
        """
        Get a privilege by name.

        Raises:
            UnknownPrivilege: if the privilege is not defined
        """
        try:
            return self._privileges[name]
        except KeyError:
            raise UnknownPrivilege(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._privileges

    def __iter__(self):
        return iter(self._privileges.values())

    def __len__(self) -> int:
        return len(self._privileges)

    def names(self) -> FrozenSet[str]:
        return frozenset(self._privileges)

    def namespace_of(self, privilege) -> str:
        """Namespace of a privilege (accepts a Privilege or its name)"""
        if isinstance(privilege, Privilege):
            privilege = privilege.name
        return self.lookup(privilege).namespace

    def in_namespace(self, namespace: str) -> List[Privilege]:
        return [p for p in self._privileges.values() if p.namespace == namespace]

    def audit_privileges(self) -> List[Privilege]:
        return [p for p in self._privileges.values() if p.is_audit]

    def satisfies(self, name: str) -> FrozenSet[str]:
        """
        Privilege names covered by a grant of `name`, including itself.

        Raises:
            UnknownPrivilege: if the privilege is not defined
        """
        try:
            return self._expansion[name]
        except KeyError:
            raise UnknownPrivilege(name) from None

    def expand(self, names: Iterable[str]) -> FrozenSet[str]:
        """Union of satisfies() over several privilege names"""
        expanded = set()
        for name in names:
            expanded |= self.satisfies(name)
        return frozenset(expanded)
