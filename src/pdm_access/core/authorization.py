"""
Authorization Facade

The single entry point for the API layer:

    decision = access.authorize("alice@pdm", "/resource/node1/guest/100", "Resource.Modify")

and the only component that mutates the ACL table. Mutations:
- require Access.Modify on /access/acl for the acting subject
- optionally require the caller's digest to match the current table
- refuse to remove the last path to Access.Modify on /access/acl
- write through to persistence, rolling back the in-memory change on failure
"""

import logging
import threading
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .acl import AclEntry, AclSnapshot, AclStore, ChangeOp
from .errors import (
    DigestMismatch,
    InvalidPath,
    LockoutError,
    PermissionDenied,
    PersistenceFailure,
    UnknownPrivilege,
    UnknownRole,
)
from .evaluator import Decision, PermissionEvaluator
from .identity import GROUP_PREFIX, GroupResolver
from .paths import ACL_PATH, PathLike, normalize
from .privileges import ACCESS_AUDIT, ACCESS_MODIFY, PrivilegeRegistry
from .roles import RoleRegistry
from ..data.repos.base import AclRepository, InMemoryAclRepository

logger = logging.getLogger(__name__)

BOOTSTRAP_ACTOR = "bootstrap"


class AccessControl:
    """
    Authorization facade over the evaluator, ACL store and persistence.

    authorize() never raises for bad input: malformed paths and undefined
    privileges come back as DENY, so callers can render every failure as a
    uniform "forbidden".
    """

    def __init__(
        self,
        privileges: PrivilegeRegistry,
        roles: RoleRegistry,
        store: Optional[AclStore] = None,
        repository: Optional[AclRepository] = None,
        groups: Optional[GroupResolver] = None,
        cache_enabled: bool = False,
        bootstrap_entries: Optional[Iterable[AclEntry]] = None,
    ):
        """
        Initialize the facade.

        Args:
            privileges: Privilege registry
            roles: Role registry built over the same privileges
            store: ACL store (default: new empty store)
            repository: Persistence collaborator (default: in-memory)
            groups: Group membership resolver (default: no groups)
            cache_enabled: Memoize effective privileges until the ACL changes
            bootstrap_entries: Entries seeded by load() when persistence is empty
        """
        self.privileges = privileges
        self.roles = roles
        self.store = store if store is not None else AclStore()
        self.repository = repository if repository is not None else InMemoryAclRepository()
        self.evaluator = PermissionEvaluator(self.store, roles, groups=groups, cache_enabled=cache_enabled)
        self.bootstrap_entries: List[AclEntry] = list(bootstrap_entries or [])
        self._mutation_lock = threading.Lock()

    # =========================================================================
    # LOADING
    # =========================================================================

    def load(self) -> Dict[str, int]:
        """
        Load the ACL table from persistence.

        Entries naming unknown roles are skipped with a warning rather than
        failing the whole load. If persistence holds no entries at all,
        bootstrap entries are seeded and written through; a table whose
        entries were all skipped is not seeded over.

        Returns:
            Dict with counts of loaded, skipped and bootstrapped entries
        """
        results = {"loaded": 0, "skipped": 0, "bootstrapped": 0}

        persisted = self.repository.load_all()
        entries = []
        for entry in persisted:
            try:
                self._validate(entry)
            except UnknownRole as e:
                logger.warning(f"Skipping ACL entry on {entry.path} for {entry.subject}: {e}")
                results["skipped"] += 1
                continue
            entries.append(entry)

        with self._mutation_lock:
            self.store.replace_all(entries)
            results["loaded"] = len(self.store)

            if not persisted and self.bootstrap_entries:
                for entry in self.bootstrap_entries:
                    self._validate(entry)
                    if self._apply(entry, ChangeOp.INSERT, BOOTSTRAP_ACTOR):
                        results["bootstrapped"] += 1
                logger.info(f"Seeded {results['bootstrapped']} bootstrap ACL entries")

        logger.info(f"ACL load complete: {results}")
        return results

    def _validate(self, entry: AclEntry) -> None:
        if entry.role not in self.roles:
            raise UnknownRole(entry.role)

    # =========================================================================
    # AUTHORIZATION
    # =========================================================================

    def authorize(
        self,
        subject: str,
        path: PathLike,
        privilege: str,
        partial: bool = False,
    ) -> Decision:
        """
        Can subject exercise privilege on path?

        Args:
            subject: User or group identifier
            path: Object path
            privilege: Required privilege name
            partial: Also allow if the privilege is held on any path below

        Returns:
            Decision.ALLOW or Decision.DENY
        """
        try:
            path = normalize(path)
            decision = self.evaluator.evaluate(subject, path, privilege)
            if decision is Decision.DENY and partial:
                for descendant in self.store.descendant_paths(path):
                    if self.evaluator.evaluate(subject, descendant, privilege).allowed:
                        decision = Decision.ALLOW
                        break
        except (InvalidPath, UnknownPrivilege) as e:
            logger.warning(f"Authorization DENY for {subject}: {e}")
            return Decision.DENY

        return decision

    def check(self, subject: str, path: PathLike, privilege: str, partial: bool = False) -> None:
        """
        Like authorize(), but raise on deny.

        Raises:
            PermissionDenied: with a uniform message
        """
        if not self.authorize(subject, path, privilege, partial=partial).allowed:
            raise PermissionDenied()

    def permissions(self, subject: str, path: PathLike) -> FrozenSet[str]:
        """Effective privileges of subject on path"""
        return self.evaluator.effective_privileges(subject, path)

    # =========================================================================
    # ACL MANAGEMENT
    # =========================================================================

    def list_acl(self, actor: str, path: Optional[PathLike] = None, exact: bool = False) -> List[AclEntry]:
        """
        List ACL entries, optionally restricted to a path (and its subtree
        unless exact is set).

        Raises:
            PermissionDenied: if actor lacks Access.Audit on /access/acl
        """
        self._require(actor, ACCESS_AUDIT)

        entries = self.store.all_entries()
        if path is None:
            return entries

        path = normalize(path)
        if exact:
            return [e for e in entries if e.path == path]
        return [e for e in entries if path.is_ancestor_of(e.path)]

    def digest(self) -> str:
        """Current ACL digest; pass it back to grant/revoke to detect races"""
        return self.store.digest()

    def grant(
        self,
        actor: str,
        path: PathLike,
        subject: str,
        role: str,
        propagate: bool = True,
        digest: Optional[str] = None,
    ) -> AclEntry:
        """
        Grant role to subject on path.

        Granting an entry that already exists is a no-op.

        Raises:
            PermissionDenied: actor lacks Access.Modify on /access/acl
            InvalidPath: path is malformed
            UnknownRole: role is not defined
            DigestMismatch: digest given and the ACL changed meanwhile
            LockoutError: the grant would hide the last Access.Modify path
            PersistenceFailure: the change could not be stored
        """
        with self._mutation_lock:
            self._require(actor, ACCESS_MODIFY)
            entry = AclEntry.create(path, subject, role, propagate)
            self._validate(entry)
            self._check_digest(digest)
            self._guard_lockout(self.store.snapshot().with_entry(entry))
            self._apply(entry, ChangeOp.INSERT, actor)

        return entry

    def revoke(
        self,
        actor: str,
        path: PathLike,
        subject: str,
        role: str,
        propagate: Optional[bool] = None,
        digest: Optional[str] = None,
    ) -> Optional[AclEntry]:
        """
        Remove the grant of role to subject on path.

        propagate selects between the two possible variants of an entry;
        when omitted, exactly one variant must exist.

        Returns:
            The removed entry, or None if there was nothing to remove

        Raises:
            PermissionDenied: actor lacks Access.Modify on /access/acl
            ValueError: propagate omitted and both variants exist
            DigestMismatch: digest given and the ACL changed meanwhile
            LockoutError: this is the last path to Access.Modify
            PersistenceFailure: the change could not be stored
        """
        with self._mutation_lock:
            self._require(actor, ACCESS_MODIFY)
            target = normalize(path)
            self._check_digest(digest)

            candidates = [
                e for e in self.store.entries_at(target)
                if e.subject == subject and e.role == role
                and (propagate is None or e.propagate == propagate)
            ]
            if not candidates:
                logger.info(f"Revoke by {actor}: no {role} entry for {subject} on {target}")
                return None
            if len(candidates) > 1:
                raise ValueError(
                    f"Both propagating and non-propagating {role} entries exist for "
                    f"{subject} on {target}; specify propagate"
                )

            entry = candidates[0]
            self._guard_lockout(self.store.snapshot().without_entry(entry))
            self._apply(entry, ChangeOp.REMOVE, actor)

        return entry

    def _require(self, actor: str, privilege: str) -> None:
        if not self.authorize(actor, ACL_PATH, privilege).allowed:
            logger.warning(f"ACL access by {actor} denied: lacks {privilege} on {ACL_PATH}")
            raise PermissionDenied()

    def _check_digest(self, digest: Optional[str]) -> None:
        if digest is None:
            return
        current = self.store.digest()
        if digest != current:
            raise DigestMismatch(expected=digest, actual=current)

    def _holders(self, subject: str) -> FrozenSet[str]:
        """Concrete subjects an entry subject stands for; a group counts only through its members"""
        members = self.evaluator.groups.members_of(subject)
        if members or subject.startswith(GROUP_PREFIX):
            return members
        return frozenset({subject})

    def _acl_modifiable(self, source: AclSnapshot) -> bool:
        """Does anyone reachable from the table hold Access.Modify on /access/acl?"""
        candidates = set()
        for subject in source.subjects():
            candidates |= self._holders(subject)
        return any(
            self.evaluator.evaluate(candidate, ACL_PATH, ACCESS_MODIFY, source=source).allowed
            for candidate in candidates
        )

    def _guard_lockout(self, after: AclSnapshot) -> None:
        if self._acl_modifiable(self.store.snapshot()) and not self._acl_modifiable(after):
            logger.error(f"Refusing ACL change: no subject would keep {ACCESS_MODIFY} on {ACL_PATH}")
            raise LockoutError(
                f"Refusing change: it would leave no subject with {ACCESS_MODIFY} on {ACL_PATH}"
            )

    def _apply(self, entry: AclEntry, op: ChangeOp, actor: str) -> bool:
        """Apply a change in memory and persist it; roll back on failure"""
        if op == ChangeOp.INSERT:
            changed = self.store.insert(entry)
        else:
            changed = self.store.remove(entry)
        if not changed:
            return False

        try:
            self.repository.on_change(entry, op, actor=actor)
        except Exception as e:
            if op == ChangeOp.INSERT:
                self.store.remove(entry)
            else:
                self.store.insert(entry)
            logger.error(f"Failed to persist ACL {op.value} of {entry.role} for {entry.subject} on {entry.path}: {e}")
            raise PersistenceFailure(f"Failed to persist ACL {op.value}: {e}") from e

        logger.info(f"ACL {op.value} by {actor}: {entry.role} for {entry.subject} on {entry.path} (propagate={entry.propagate})")
        return True

    # =========================================================================
    # UTILITY
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics"""
        return {
            "privileges": len(self.privileges),
            "roles": len(self.roles),
            "acl": self.store.get_stats(),
            "evaluator": self.evaluator.get_stats(),
        }
