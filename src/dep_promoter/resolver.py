"""
Conflict resolution for eligible promotion groups.

The promoted source is the one written by the first contributor seen during
the workspace scan. Requirements of other contributors are never merged into
it; the ones that mean something different are recorded so the maintainer
can tune the promoted requirement by hand.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Set, Tuple

from .aggregator import PromotionGroup, SkipReason
from .dependency import (
    DependencyKind,
    DependencyRecord,
    Source,
    WorkspaceReference,
    WorkspaceSnapshot,
    sources_compatible,
)
from .version_req import requirements_equivalent


@dataclass(frozen=True)
class PromotionDecision:
    """An eligible group resolved to the single source it is promoted with."""

    name: str
    kind: DependencyKind
    source: Source
    contributors: Tuple[DependencyRecord, ...]
    divergent_requirements: Tuple[Tuple[str, str], ...] = ()
    workspace_default_features: bool = False
    owns_root_entry: bool = True

    @property
    def key(self) -> Tuple[str, DependencyKind]:
        return (self.name, self.kind)

    @property
    def version_requirement(self):
        return self.source.version_requirement


@dataclass(frozen=True)
class ResolutionResult:
    decisions: Tuple[PromotionDecision, ...] = ()
    rejected: Tuple[PromotionGroup, ...] = ()


def _divergent_requirements(
    promoted: Source, contributors: Iterable[DependencyRecord]
) -> Tuple[Tuple[str, str], ...]:
    divergent = []
    for record in contributors:
        requirement = record.source.version_requirement
        if not requirements_equivalent(promoted.version_requirement, requirement):
            divergent.append((record.member_id, requirement or "*"))
    return tuple(divergent)


def resolve_group(group: PromotionGroup) -> PromotionDecision:
    """
    Pick the promoted source for one eligible group.

    Contributors are already ordered by first-seen position (ties broken by
    manifest path), so the first one wins.
    """
    if not group.eligible:
        raise ValueError(f"Group {group.name} ({group.kind.value}) is not eligible")

    first = group.contributors[0]
    return PromotionDecision(
        name=group.name,
        kind=group.kind,
        source=first.source,
        contributors=group.contributors,
        divergent_requirements=_divergent_requirements(first.source, group.contributors),
        workspace_default_features=False,
    )


def resolve(groups: Iterable[PromotionGroup]) -> ResolutionResult:
    """
    Resolve every eligible group into a decision.

    The workspace dependency table has one slot per name. When a name is
    eligible under several kinds, the first kind in canonical order owns the
    slot; later kinds share it when their source is compatible and are
    rejected otherwise.
    """
    decisions: List[PromotionDecision] = []
    rejected: List[PromotionGroup] = []
    owners: Dict[str, PromotionDecision] = {}

    ordered = sorted(
        (group for group in groups if group.eligible), key=lambda group: group.sort_key
    )
    for group in ordered:
        decision = resolve_group(group)
        owner = owners.get(group.name)
        if owner is None:
            owners[group.name] = decision
            decisions.append(decision)
        elif sources_compatible(owner.source, decision.source, group.name):
            decisions.append(
                replace(
                    decision,
                    source=owner.source,
                    divergent_requirements=_divergent_requirements(
                        owner.source, group.contributors
                    ),
                    owns_root_entry=False,
                )
            )
        else:
            rejected.append(
                replace(group, eligible=False, skip_reason=SkipReason.ROOT_CONFLICT)
            )

    return ResolutionResult(decisions=tuple(decisions), rejected=tuple(rejected))


def covered_locations(decisions: Iterable[PromotionDecision]) -> Set[Tuple]:
    """Locations (manifest, table, name) that receive an override from a decision."""
    return {
        (record.manifest_path, (record.kind.section,), record.name)
        for decision in decisions
        for record in decision.contributors
    }


def uncovered_references(
    name: str, snapshot: WorkspaceSnapshot, covered: Set[Tuple]
) -> List[WorkspaceReference]:
    """``workspace = true`` declarations of ``name`` no decision rewrites."""
    return [
        reference
        for reference in snapshot.references_to(name)
        if reference.location not in covered
    ]


def protect_workspace_references(
    resolution: ResolutionResult, snapshot: WorkspaceSnapshot
) -> ResolutionResult:
    """
    Reject promotions that would move other declarations to another crate.

    A promotion rewrites the root entry of its name. Declarations inheriting
    that entry outside the promoted groups (other kinds below threshold,
    target-specific tables) get their feature posture pinned by the planner,
    but their source and requirement follow the root entry. When the promoted
    source or requirement differs from the current root entry, every
    decision for that name is rejected as a root conflict.
    """
    covered = covered_locations(resolution.decisions)
    blocked = set()

    for decision in resolution.decisions:
        if not decision.owns_root_entry:
            continue
        outside = uncovered_references(decision.name, snapshot, covered)
        if not outside:
            continue
        current = outside[0].source
        if not sources_compatible(current, decision.source, decision.name) or not (
            requirements_equivalent(current.version_requirement, decision.version_requirement)
        ):
            blocked.add(decision.name)

    if not blocked:
        return resolution

    decisions = tuple(d for d in resolution.decisions if d.name not in blocked)
    rejected = list(resolution.rejected) + [
        PromotionGroup(
            name=decision.name,
            kind=decision.kind,
            contributors=decision.contributors,
            eligible=False,
            skip_reason=SkipReason.ROOT_CONFLICT,
        )
        for decision in resolution.decisions
        if decision.name in blocked
    ]
    return ResolutionResult(decisions=decisions, rejected=tuple(rejected))
