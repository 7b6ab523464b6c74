"""Set comparison over conditions and channel links.

The reconciler never edits an external condition in place. It computes two
disjoint lists, what exists externally but is no longer declared and what is
declared but does not exist externally, and applies them as deletes and
creates. A changed condition shows up in both lists. Because the diff is
recomputed from live external state each time, a sync interrupted halfway
converges on the next run.

Example::

    desired = ConditionSet(policy.spec.conditions())
    actual = ConditionSet(conditions_read_from_api)
    diff = diff_conditions(desired, actual)
    for condition in diff.to_delete: ...   # carry external ids
    for condition in diff.to_create: ...   # carry no external ids
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from alertsync.domain.conditions import ConditionBase

T = TypeVar("T")
C = TypeVar("C", bound=ConditionBase)


@dataclass(frozen=True)
class SetDiff(Generic[T]):
    """Elements to create and to delete; the two never overlap."""

    to_create: list[T] = field(default_factory=list)
    to_delete: list[T] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_create and not self.to_delete


class ConditionSet(Generic[C]):
    """Unordered conditions keyed by semantic equality.

    ``external_id`` plays no part in membership or equality, and duplicates
    collapse to presence. The elements passed in are all kept (``members``)
    so that every externally stored duplicate can still be addressed by id.
    """

    def __init__(self, conditions: Iterable[C] = ()):
        self._members: list[C] = list(conditions)
        self._index: dict[Hashable, C] = {}
        for condition in self._members:
            self._index.setdefault(condition.semantic_key(), condition)

    def __contains__(self, condition: object) -> bool:
        if not isinstance(condition, ConditionBase):
            return False
        return condition.semantic_key() in self._index

    def __iter__(self) -> Iterator[C]:
        """Distinct conditions, first occurrence wins."""
        return iter(self._index.values())

    def __len__(self) -> int:
        return len(self._index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConditionSet):
            return NotImplemented
        return self._index.keys() == other._index.keys()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ConditionSet({[c.name for c in self]})"

    @property
    def members(self) -> list[C]:
        """Every element as given, duplicates included."""
        return list(self._members)


def diff_conditions(desired: ConditionSet[C], actual: ConditionSet[C]) -> SetDiff[C]:
    """Compute deletes (from ``actual``) and creates (from ``desired``)."""
    to_delete = [condition for condition in actual.members if condition not in desired]
    to_create = [condition for condition in desired if condition not in actual]
    return SetDiff(to_create=to_create, to_delete=to_delete)


def diff_links(desired: Iterable[int], actual: Iterable[int]) -> SetDiff[int]:
    """The same contract over plain id sets (channel-to-policy links)."""
    wanted, present = set(desired), set(actual)
    return SetDiff(to_create=sorted(wanted - present), to_delete=sorted(present - wanted))
