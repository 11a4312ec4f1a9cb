"""
Object Path Resolver

Object paths are filesystem-like identifiers for manageable resources and
system areas:

    /                                   root
    /system                             daemon-wide settings
    /resource/{remote-id}/guest/{vmid}  a guest on a remote
    /access/acl                         the ACL table itself

Segments are opaque tokens. A path's ancestors are every prefix ending at a
segment boundary, root first, the path itself last.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

from .errors import InvalidPath

# Whitespace, control characters and the separator are never part of a segment
_FORBIDDEN_SEGMENT_CHARS = re.compile(r"[\s\x00-\x1f\x7f/]")


@dataclass(frozen=True, order=True)
class ObjectPath:
    """
    Normalized hierarchical object path.

    Immutable and hashable, so it can key the ACL table directly.
    """
    segments: Tuple[str, ...] = ()

    @classmethod
    def root(cls) -> "ObjectPath":
        return cls(())

    @classmethod
    def parse(cls, raw: str) -> "ObjectPath":
        """
        Parse and validate a raw path string.

        Raises:
            InvalidPath: if the path is malformed
        """
        if not isinstance(raw, str):
            raise InvalidPath(raw, "path must be a string")
        if not raw:
            raise InvalidPath(raw, "path is empty")
        if not raw.startswith("/"):
            raise InvalidPath(raw, "path must start with '/'")
        if raw == "/":
            return cls.root()
        if raw.endswith("/"):
            raise InvalidPath(raw, "trailing slash is not allowed")

        return cls.from_components(raw[1:].split("/"), raw=raw)

    @classmethod
    def from_components(cls, components: Iterable[str], raw=None) -> "ObjectPath":
        """
        Build a path from its components, e.g. ["access", "domains"].

        Raises:
            InvalidPath: if any component is not a valid segment
        """
        segments = tuple(components)
        shown = raw if raw is not None else "/" + "/".join(str(s) for s in segments)
        for segment in segments:
            if not isinstance(segment, str):
                raise InvalidPath(shown, f"segment {segment!r} is not a string")
            if not segment:
                raise InvalidPath(shown, "empty path segment")
            if segment in (".", ".."):
                raise InvalidPath(shown, f"relative segment '{segment}' is not allowed")
            if _FORBIDDEN_SEGMENT_CHARS.search(segment):
                raise InvalidPath(shown, f"segment {segment!r} contains forbidden characters")
        return cls(segments)

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def parent(self) -> "ObjectPath":
        """Parent path; the root is its own parent"""
        return ObjectPath(self.segments[:-1])

    def join(self, *components: str) -> "ObjectPath":
        return ObjectPath.from_components(self.segments + tuple(components))

    def ancestors(self) -> List["ObjectPath"]:
        """All ancestors from the root down to this path, inclusive"""
        return [ObjectPath(self.segments[:i]) for i in range(len(self.segments) + 1)]

    def is_ancestor_of(self, other: "ObjectPath", strict: bool = False) -> bool:
        if strict and self.depth >= other.depth:
            return False
        return other.segments[:self.depth] == self.segments

    def __str__(self) -> str:
        return "/" + "/".join(self.segments)

    def __repr__(self) -> str:
        return f"ObjectPath('{self}')"


PathLike = Union[str, ObjectPath]


def normalize(raw: PathLike) -> ObjectPath:
    """
    Normalize a raw path (string or ObjectPath) into an ObjectPath.

    Raises:
        InvalidPath: if the path is malformed
    """
    if isinstance(raw, ObjectPath):
        return raw
    return ObjectPath.parse(raw)


def ancestors(path: PathLike) -> List[ObjectPath]:
    """Ordered ancestor chain from root to path inclusive"""
    return normalize(path).ancestors()


# Well-known paths
ACL_PATH = ObjectPath(("access", "acl"))
