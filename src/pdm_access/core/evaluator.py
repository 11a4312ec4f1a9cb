"""
Permission Evaluator

Resolves a subject's effective privileges at a path by walking the
ancestor chain from the root down to the path:

1. At each level, collect entries whose subject matches (directly or via
   group membership).
2. Entries above the target path count only if they propagate; entries on
   the target path itself always count.
3. The deepest level with at least one counted entry wins. Its privileges
   are the union of the (superset-expanded) role privileges of all counted
   entries on that level.
4. No counted entry anywhere means no privileges: default deny.

There are no deny entries. A deeper grant of a role lacking a privilege
(NoAccess, for instance) hides what a shallower level granted.

The evaluator holds no ACL state of its own; it reads from whatever
`source` it is given (the live store by default, or a snapshot).
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Protocol, Tuple

from .acl import AclEntry, AclStore
from .identity import GroupResolver, NoGroups
from .paths import ObjectPath, PathLike, normalize
from .roles import RoleRegistry

logger = logging.getLogger(__name__)

_NOTHING: FrozenSet[str] = frozenset()


class Decision(str, Enum):
    """Authorization decision"""
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


class EntrySource(Protocol):
    def entries_at(self, path: ObjectPath) -> FrozenSet[AclEntry]:
        ...


class PermissionEvaluator:
    """
    Pure decision function over (ACL source, role registry, query).

    When cache_enabled is set, effective privilege sets computed against the
    live store are memoized per (subject, path) and dropped whenever the
    store generation changes.
    """

    def __init__(
        self,
        store: AclStore,
        roles: RoleRegistry,
        groups: Optional[GroupResolver] = None,
        cache_enabled: bool = False,
    ):
        self.store = store
        self.roles = roles
        self.groups = groups if groups is not None else NoGroups()
        self.cache_enabled = cache_enabled
        self._cache: Dict[Tuple[str, ObjectPath], Tuple[int, FrozenSet[str]]] = {}
        self._cache_generation = store.generation
        self._cache_hits = 0
        self._cache_misses = 0

    def _matches(self, subject: str, entry: AclEntry) -> bool:
        return entry.subject == subject or self.groups.is_member(subject, entry.subject)

    def _known_role(self, entry: AclEntry) -> bool:
        if entry.role in self.roles:
            return True
        # Entries are validated on load; this only trips if the role
        # catalogue changed underneath a persisted table.
        logger.warning(f"Ignoring ACL entry on {entry.path} with unknown role {entry.role}")
        return False

    def _resolve(self, subject: str, path: ObjectPath, source: EntrySource) -> FrozenSet[str]:
        result = _NOTHING
        for ancestor in path.ancestors():
            is_leaf = ancestor == path
            counted = [
                entry for entry in source.entries_at(ancestor)
                if (is_leaf or entry.propagate) and self._matches(subject, entry)
                and self._known_role(entry)
            ]
            if not counted:
                continue

            level = set()
            for entry in counted:
                level |= self.roles.privileges_of(entry.role)
            result = frozenset(level)

        return result

    def effective_privileges(
        self,
        subject: str,
        path: PathLike,
        source: Optional[EntrySource] = None,
    ) -> FrozenSet[str]:
        """
        Privileges the subject holds at path.

        Raises:
            InvalidPath: if path is malformed
        """
        path = normalize(path)

        if source is not None:
            return self._resolve(subject, path, source)

        if not self.cache_enabled:
            return self._resolve(subject, path, self.store)

        key = (subject, path)
        generation = self.store.generation
        if generation != self._cache_generation:
            self._cache.clear()
            self._cache_generation = generation
        cached = self._cache.get(key)
        # Values carry the generation they were resolved under
        if cached is not None and cached[0] == generation:
            self._cache_hits += 1
            return cached[1]

        self._cache_misses += 1
        privileges = self._resolve(subject, path, self.store)
        self._cache[key] = (generation, privileges)
        return privileges

    def evaluate(
        self,
        subject: str,
        path: PathLike,
        required: str,
        source: Optional[EntrySource] = None,
    ) -> Decision:
        """
        Decide whether subject holds `required` at path.

        Raises:
            InvalidPath: if path is malformed
            UnknownPrivilege: if required is not a defined privilege
        """
        self.roles.privileges.lookup(required)

        if required in self.effective_privileges(subject, path, source):
            decision = Decision.ALLOW
        else:
            decision = Decision.DENY
        logger.debug(f"Evaluate {required} on {path} for {subject}: {decision.value}")
        return decision

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_stats(self) -> Dict[str, int]:
        return {
            "cache_entries": len(self._cache),
            "cache_hits": self._cache_hits,
            "cache_misses": self._cache_misses,
        }
