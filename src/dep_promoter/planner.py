"""
Rewrite planning.

Turns promotion decisions into the edits the manifest writer applies. An op
is only emitted when the planned entry differs from what the manifest
already holds, so planning against an already rewritten workspace yields an
empty plan.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .dependency import DependencyKind, WorkspaceSnapshot
from .features import FeatureOverride, override_for_reference, workspace_entry
from .resolver import PromotionDecision, covered_locations, uncovered_references
from .version_req import requirements_equivalent

WORKSPACE_TABLE = ("workspace", "dependencies")


class RewriteOpKind(Enum):
    WORKSPACE_ENTRY = "workspace_entry"
    MEMBER_ENTRY = "member_entry"


@dataclass(frozen=True)
class RewriteOp:
    """One edit against one manifest file."""

    kind: RewriteOpKind
    manifest_path: Path
    table: Tuple[str, ...]
    name: str
    dependency_kind: DependencyKind
    entry: Dict[str, Any]
    previous: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.kind.value,
            "manifest_path": str(self.manifest_path),
            "table": ".".join(self.table),
            "name": self.name,
            "dependency_kind": self.dependency_kind.value,
            "entry": self.entry,
            "previous": self.previous,
        }


@dataclass(frozen=True)
class RewritePlan:
    ops: Tuple[RewriteOp, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.ops

    @property
    def manifests(self) -> List[Path]:
        return list(self.ops_by_manifest())

    def ops_by_manifest(self) -> Dict[Path, List[RewriteOp]]:
        """Ops partitioned per target file, in plan order."""
        partitions: Dict[Path, List[RewriteOp]] = {}
        for op in self.ops:
            partitions.setdefault(op.manifest_path, []).append(op)
        return partitions

    def to_dict(self) -> Dict[str, Any]:
        return {"ops": [op.to_dict() for op in self.ops]}


def _normalized_entry(entry: Any) -> Optional[Dict[str, Any]]:
    if isinstance(entry, str):
        return {"version": entry}
    if not isinstance(entry, Mapping):
        return None
    return {
        ("default-features" if key == "default_features" else key): value
        for key, value in entry.items()
    }


def entries_match(current: Any, planned: Mapping[str, Any]) -> bool:
    """
    Compare the current content of an entry with the planned one.

    Requirements compare semantically, features as sets, and the
    ``default_features`` spelling is accepted for ``default-features``.
    """
    normalized = _normalized_entry(current)
    if normalized is None or set(normalized) != set(planned):
        return False

    for key, value in planned.items():
        existing = normalized[key]
        if key == "version":
            if not isinstance(existing, str) or not requirements_equivalent(existing, value):
                return False
        elif key == "features":
            if not isinstance(existing, list):
                return False
            if {str(feature) for feature in existing} != set(value):
                return False
        elif existing != value:
            return False
    return True


def _pin_references(
    name: str, current_root: Any, covered: Set[Tuple], snapshot: WorkspaceSnapshot
) -> List[RewriteOp]:
    """Member ops keeping inheritors outside the decisions on their current posture."""
    ops = []
    for reference in uncovered_references(name, snapshot, covered):
        planned = override_for_reference(reference, current_root).to_entry()
        if entries_match(reference.entry, planned):
            continue
        ops.append(
            RewriteOp(
                kind=RewriteOpKind.MEMBER_ENTRY,
                manifest_path=reference.manifest_path,
                table=reference.table,
                name=name,
                dependency_kind=reference.kind,
                entry=planned,
                previous=reference.entry,
            )
        )
    return ops


def plan_rewrites(
    decisions: Sequence[PromotionDecision],
    overrides: Mapping[Tuple[str, DependencyKind], Sequence[FeatureOverride]],
    snapshot: WorkspaceSnapshot,
) -> RewritePlan:
    """
    Plan the edits realizing the decisions.

    Args:
        decisions: Resolved decisions, in group order
        overrides: Per-member overrides keyed by decision key
        snapshot: Current manifest contents to diff against

    Returns:
        RewritePlan: Root ops first, then member ops ordered by manifest
        path, kind, name and table
    """
    root_ops: List[RewriteOp] = []
    member_ops: List[RewriteOp] = []
    covered = covered_locations(decisions)

    for decision in decisions:
        if decision.owns_root_entry:
            planned = workspace_entry(decision)
            current = snapshot.workspace_dependencies.get(decision.name)
            if not entries_match(current, planned):
                root_ops.append(
                    RewriteOp(
                        kind=RewriteOpKind.WORKSPACE_ENTRY,
                        manifest_path=snapshot.root_manifest_path,
                        table=WORKSPACE_TABLE,
                        name=decision.name,
                        dependency_kind=decision.kind,
                        entry=planned,
                        previous=current,
                    )
                )
                member_ops.extend(
                    _pin_references(decision.name, current, covered, snapshot)
                )

        for override in overrides.get(decision.key, ()):
            member = snapshot.member(override.manifest_path)
            current = member.current_entry(decision.kind, decision.name) if member else None
            planned = override.to_entry()
            if entries_match(current, planned):
                continue
            member_ops.append(
                RewriteOp(
                    kind=RewriteOpKind.MEMBER_ENTRY,
                    manifest_path=override.manifest_path,
                    table=(decision.kind.section,),
                    name=decision.name,
                    dependency_kind=decision.kind,
                    entry=planned,
                    previous=current,
                )
            )

    member_ops.sort(
        key=lambda op: (
            str(op.manifest_path), op.dependency_kind.order, op.name, op.table
        )
    )
    return RewritePlan(ops=tuple(root_ops + member_ops))
