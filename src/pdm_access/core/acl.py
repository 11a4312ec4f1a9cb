"""
ACL Store

In-memory mapping from object path to the set of ACL entries on that path.

Each path maps to a frozenset that is replaced wholesale on mutation, so
readers never take a lock and always see either the old or the new set.
Writers serialize on a single lock.
"""

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .paths import ObjectPath, PathLike, normalize

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet["AclEntry"] = frozenset()


class ChangeOp(str, Enum):
    """Kind of ACL mutation reported to persistence"""
    INSERT = "insert"
    REMOVE = "remove"


@dataclass(frozen=True)
class AclEntry:
    """
    Grant of a role to a subject at a path.

    propagate: whether the grant also applies to descendant paths
    """
    path: ObjectPath
    subject: str
    role: str
    propagate: bool = True

    @classmethod
    def create(cls, path: PathLike, subject: str, role: str, propagate: bool = True) -> "AclEntry":
        """Build an entry from a raw path, validating it"""
        if not subject:
            raise ValueError("ACL entry subject must not be empty")
        if not role:
            raise ValueError("ACL entry role must not be empty")
        return cls(path=normalize(path), subject=subject, role=role, propagate=propagate)

    def sort_key(self):
        return (self.path, self.subject, self.role, self.propagate)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary"""
        return {
            "path": str(self.path),
            "subject": self.subject,
            "role": self.role,
            "propagate": self.propagate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AclEntry":
        """Deserialize from dictionary"""
        return cls.create(
            path=data["path"],
            subject=data["subject"],
            role=data["role"],
            propagate=data.get("propagate", True),
        )


def compute_digest(entries: Iterable[AclEntry]) -> str:
    """SHA-256 over the canonical serialization of an entry set"""
    canonical = [entry.to_dict() for entry in sorted(entries, key=AclEntry.sort_key)]
    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


class AclSnapshot:
    """
    Immutable point-in-time view of the ACL table.

    Offers the same entries_at() contract as the store, plus helpers to
    derive hypothetical snapshots for what-if evaluation.
    """

    def __init__(self, table: Mapping[ObjectPath, FrozenSet[AclEntry]]):
        self._table: Dict[ObjectPath, FrozenSet[AclEntry]] = dict(table)

    def entries_at(self, path: ObjectPath) -> FrozenSet[AclEntry]:
        return self._table.get(path, _EMPTY)

    def all_entries(self) -> List[AclEntry]:
        return [entry for entries in self._table.values() for entry in entries]

    def subjects(self) -> FrozenSet[str]:
        return frozenset(entry.subject for entry in self.all_entries())

    def with_entry(self, entry: AclEntry) -> "AclSnapshot":
        table = dict(self._table)
        table[entry.path] = table.get(entry.path, _EMPTY) | {entry}
        return AclSnapshot(table)

    def without_entry(self, entry: AclEntry) -> "AclSnapshot":
        table = dict(self._table)
        remaining = table.get(entry.path, _EMPTY) - {entry}
        if remaining:
            table[entry.path] = remaining
        else:
            table.pop(entry.path, None)
        return AclSnapshot(table)


class AclStore:
    """
    Authoritative in-memory ACL table.

    The store trusts its caller: privilege checks for insert/remove are the
    AccessControl facade's job.
    """

    def __init__(self, entries: Optional[Iterable[AclEntry]] = None):
        self._table: Dict[ObjectPath, FrozenSet[AclEntry]] = {}
        self._write_lock = threading.Lock()
        self._generation = 0

        for entry in entries or ():
            self.insert(entry)

    @property
    def generation(self) -> int:
        """Incremented on every mutation that changes the table"""
        return self._generation

    def entries_at(self, path: ObjectPath) -> FrozenSet[AclEntry]:
        """Entries on exactly this path"""
        return self._table.get(path, _EMPTY)

    def insert(self, entry: AclEntry) -> bool:
        """
        Add an entry.

        Returns:
            True if the entry was added, False if it was already present
        """
        with self._write_lock:
            current = self._table.get(entry.path, _EMPTY)
            if entry in current:
                return False
            self._table[entry.path] = current | {entry}
            self._generation += 1
        logger.debug(f"ACL insert: {entry.subject} {entry.role} on {entry.path} (propagate={entry.propagate})")
        return True

    def remove(self, entry: AclEntry) -> bool:
        """
        Remove an entry.

        Returns:
            True if the entry was removed, False if it was not present
        """
        with self._write_lock:
            current = self._table.get(entry.path, _EMPTY)
            if entry not in current:
                return False
            remaining = current - {entry}
            if remaining:
                self._table[entry.path] = remaining
            else:
                del self._table[entry.path]
            self._generation += 1
        logger.debug(f"ACL remove: {entry.subject} {entry.role} on {entry.path}")
        return True

    def replace_all(self, entries: Iterable[AclEntry]) -> None:
        """Swap in a complete new table (used on reload)"""
        table: Dict[ObjectPath, set] = {}
        for entry in entries:
            table.setdefault(entry.path, set()).add(entry)
        frozen = {path: frozenset(items) for path, items in table.items()}
        with self._write_lock:
            self._table = frozen
            self._generation += 1

    def snapshot(self) -> AclSnapshot:
        with self._write_lock:
            return AclSnapshot(self._table)

    def paths(self) -> List[ObjectPath]:
        with self._write_lock:
            return sorted(self._table)

    def descendant_paths(self, path: ObjectPath) -> List[ObjectPath]:
        """Stored paths strictly below path"""
        return [p for p in self.paths() if path.is_ancestor_of(p, strict=True)]

    def all_entries(self) -> List[AclEntry]:
        return sorted(self.snapshot().all_entries(), key=AclEntry.sort_key)

    def entries_for_subject(self, subject: str) -> List[AclEntry]:
        return [entry for entry in self.all_entries() if entry.subject == subject]

    def digest(self) -> str:
        return compute_digest(self.all_entries())

    def __len__(self) -> int:
        with self._write_lock:
            return sum(len(entries) for entries in self._table.values())

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""
        entries = self.all_entries()
        return {
            "total_entries": len(entries),
            "total_paths": len(self._table),
            "generation": self._generation,
            "subjects": len({e.subject for e in entries}),
            "entries_by_role": {
                role: len([e for e in entries if e.role == role])
                for role in sorted({e.role for e in entries})
            },
        }
