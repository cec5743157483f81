"""
Groups dependency records across members and decides which groups qualify
for promotion to the workspace table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .dependency import DependencyKind, DependencyRecord, PathSource, sources_compatible


class SkipReason(Enum):
    """Why a dependency group was left untouched."""

    BELOW_THRESHOLD = "below_threshold"
    INCOMPATIBLE_SOURCES = "incompatible_sources"
    ROOT_CONFLICT = "root_conflict"


@dataclass(frozen=True)
class PromotionGroup:
    """All declarations of one (name, kind) across the workspace."""

    name: str
    kind: DependencyKind
    contributors: Tuple[DependencyRecord, ...]
    eligible: bool = False
    skip_reason: Optional[SkipReason] = None

    @property
    def key(self) -> Tuple[str, DependencyKind]:
        return (self.name, self.kind)

    @property
    def sort_key(self) -> Tuple[str, int]:
        return (self.name, self.kind.order)

    @property
    def occurrences(self) -> int:
        return len(self.contributors)


@dataclass(frozen=True)
class AggregationResult:
    groups: Tuple[PromotionGroup, ...] = ()
    path_dependencies: Tuple[DependencyRecord, ...] = ()

    @property
    def eligible_groups(self) -> List[PromotionGroup]:
        return [group for group in self.groups if group.eligible]

    @property
    def skipped_groups(self) -> List[PromotionGroup]:
        return [group for group in self.groups if not group.eligible]


def _all_compatible(name: str, records: List[DependencyRecord]) -> bool:
    first = records[0].source
    return all(sources_compatible(first, record.source, name) for record in records[1:])


def aggregate(
    records: Iterable[DependencyRecord], minimum_occurrences: int = 2
) -> AggregationResult:
    """
    Partition records into promotion groups keyed by (name, kind).

    Args:
        records: Every dependency record in the workspace
        minimum_occurrences: Contributors a group needs to be eligible

    Returns:
        AggregationResult: Groups ordered by name then kind, plus the
        path dependencies that were excluded from grouping
    """
    if minimum_occurrences < 1:
        raise ValueError("minimum_occurrences must be a positive integer")

    buckets: Dict[Tuple[str, DependencyKind], List[DependencyRecord]] = {}
    path_dependencies: List[DependencyRecord] = []

    for record in records:
        if isinstance(record.source, PathSource):
            path_dependencies.append(record)
            continue
        buckets.setdefault(record.key, []).append(record)

    groups = []
    for (name, kind), members in buckets.items():
        contributors = sorted(members, key=lambda record: record.scan_key)
        if len(contributors) < minimum_occurrences:
            eligible, reason = False, SkipReason.BELOW_THRESHOLD
        elif not _all_compatible(name, contributors):
            eligible, reason = False, SkipReason.INCOMPATIBLE_SOURCES
        else:
            eligible, reason = True, None
        groups.append(
            PromotionGroup(
                name=name,
                kind=kind,
                contributors=tuple(contributors),
                eligible=eligible,
                skip_reason=reason,
            )
        )

    groups.sort(key=lambda group: group.sort_key)
    path_dependencies.sort(key=lambda record: (record.name, record.kind.order, record.scan_key))
    return AggregationResult(groups=tuple(groups), path_dependencies=tuple(path_dependencies))
