"""
Subject identity collaborator.

Group membership is owned by the user/realm management component; the
engine only asks whether a subject belongs to a group, and (for the
self-lockout guard) who its members are.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Protocol, Set, runtime_checkable

logger = logging.getLogger(__name__)

# Subjects starting with this prefix name groups
GROUP_PREFIX = "@"


@runtime_checkable
class GroupResolver(Protocol):
    """Answers group membership questions for the evaluator"""

    def is_member(self, subject: str, group: str) -> bool:
        ...

    def members_of(self, group: str) -> FrozenSet[str]:
        ...


class NoGroups:
    """Resolver for setups without groups: subjects only match themselves"""

    def is_member(self, subject: str, group: str) -> bool:
        return False

    def members_of(self, group: str) -> FrozenSet[str]:
        return frozenset()


class StaticGroupResolver:
    """
    Group membership from a fixed mapping of group -> members.

    Typically loaded from the `groups` section of access.yaml.
    """

    def __init__(self, groups: Optional[Mapping[str, Iterable[str]]] = None):
        self._groups: Dict[str, Set[str]] = {
            group: set(members) for group, members in (groups or {}).items()
        }

    def is_member(self, subject: str, group: str) -> bool:
        return subject in self._groups.get(group, ())

    def members_of(self, group: str) -> FrozenSet[str]:
        return frozenset(self._groups.get(group, ()))

    def add_member(self, group: str, subject: str) -> None:
        self._groups.setdefault(group, set()).add(subject)
        logger.info(f"Added {subject} to group {group}")

    def remove_member(self, group: str, subject: str) -> None:
        self._groups.get(group, set()).discard(subject)
        logger.info(f"Removed {subject} from group {group}")

    def groups_of(self, subject: str) -> Set[str]:
        return {group for group, members in self._groups.items() if subject in members}
