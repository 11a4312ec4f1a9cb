"""
Base Repository

Persistence collaborator interface for the ACL table.
Supports both in-memory and file backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ...core.acl import AclEntry, ChangeOp
from ..models.acl import AclChange, AclEntryRecord


class AclRepository(ABC):
    """
    Abstract ACL repository.

    load_all() is called once at startup; on_change() after every in-memory
    mutation. on_change() must raise if the change was not stored durably;
    the caller rolls back its in-memory state in that case.
    """

    @abstractmethod
    def load_all(self) -> List[AclEntry]:
        """Load every persisted ACL entry."""
        pass

    @abstractmethod
    def on_change(self, entry: AclEntry, op: ChangeOp, actor: Optional[str] = None) -> None:
        """Durably record a single insert or remove."""
        pass


class InMemoryAclRepository(AclRepository):
    """Repository that keeps records in memory; for tests and ephemeral setups."""

    def __init__(self, entries: Optional[List[AclEntry]] = None):
        self._records: List[AclEntryRecord] = [AclEntryRecord.from_entry(e) for e in entries or []]
        self.changes: List[AclChange] = []

    def load_all(self) -> List[AclEntry]:
        return [record.to_entry() for record in self._records]

    def on_change(self, entry: AclEntry, op: ChangeOp, actor: Optional[str] = None) -> None:
        record = AclEntryRecord.from_entry(entry)
        if op == ChangeOp.INSERT:
            if record not in self._records:
                self._records.append(record)
        else:
            self._records = [r for r in self._records if r != record]
        self.changes.append(AclChange(op=op, record=record, actor=actor))
