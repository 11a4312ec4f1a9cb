"""
JSON file ACL repository.

Storage:
    <storage_dir>/acl.json   list of ACL entry records

Every change rewrites the whole file through a temporary file and an atomic
rename, so a crash leaves either the old or the new table on disk.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from ...core.acl import AclEntry, ChangeOp, compute_digest
from ..models.acl import AclEntryRecord
from .base import AclRepository

logger = logging.getLogger(__name__)

ACL_FILENAME = "acl.json"


class JsonFileAclRepository(AclRepository):
    """ACL repository backed by a single JSON file."""

    def __init__(self, storage_dir: Union[str, Path], filename: str = ACL_FILENAME):
        """
        Initialize repository.

        Args:
            storage_dir: Directory holding the ACL file (created if missing)
            filename: ACL file name
        """
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.acl_file = self.storage_dir / filename
        self._records: List[AclEntryRecord] = []

    def load_all(self) -> List[AclEntry]:
        """
        Load entries from disk.

        Records that fail validation are skipped with a warning. A file that
        is not valid JSON raises, since silently starting with an empty ACL
        table would lock everyone out.
        """
        self._records = []
        if not self.acl_file.exists():
            logger.info(f"No ACL file at {self.acl_file}, starting empty")
            return []

        with open(self.acl_file) as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"ACL file {self.acl_file} must contain a JSON list")

        entries = []
        for index, item in enumerate(data):
            try:
                record = AclEntryRecord.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid ACL record #{index} in {self.acl_file}: {e}")
                continue
            self._records.append(record)
            entries.append(record.to_entry())

        logger.info(f"Loaded {len(entries)} ACL entries from {self.acl_file}")
        return entries

    def on_change(self, entry: AclEntry, op: ChangeOp, actor: Optional[str] = None) -> None:
        record = AclEntryRecord.from_entry(entry)
        if op == ChangeOp.INSERT:
            records = self._records + ([record] if record not in self._records else [])
        else:
            records = [r for r in self._records if r != record]

        self._write(records)
        self._records = records
        logger.info(f"Persisted ACL {op.value} by {actor or 'system'}: {entry.subject} {entry.role} on {entry.path}")

    def _write(self, records: List[AclEntryRecord]) -> None:
        data = [record.model_dump(mode="json") for record in records]
        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{self.acl_file.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.acl_file)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def digest(self) -> str:
        """Digest of the persisted table, comparable with AclStore.digest()"""
        return compute_digest(record.to_entry() for record in self._records)
