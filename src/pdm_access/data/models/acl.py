"""
ACL Persistence Models

Wire/storage shape of ACL entries. Records are validated on the way in so a
corrupt file surfaces as a per-record error rather than a bad entry in the
live table.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...core.acl import AclEntry, ChangeOp
from ...core.paths import normalize


class AclEntryRecord(BaseModel):
    """Stored form of an ACL entry."""
    path: str
    subject: str = Field(min_length=1)
    role: str = Field(min_length=1)
    propagate: bool = True

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        # InvalidPath is a ValueError, which pydantic reports as a validation error
        return str(normalize(value))

    @classmethod
    def from_entry(cls, entry: AclEntry) -> AclEntryRecord:
        return cls(
            path=str(entry.path),
            subject=entry.subject,
            role=entry.role,
            propagate=entry.propagate,
        )

    def to_entry(self) -> AclEntry:
        return AclEntry.create(
            path=self.path,
            subject=self.subject,
            role=self.role,
            propagate=self.propagate,
        )


class AclChange(BaseModel):
    """A single mutation of the ACL table, as reported to persistence."""
    op: ChangeOp
    record: AclEntryRecord
    actor: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
