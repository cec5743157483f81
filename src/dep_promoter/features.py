"""
Feature reconciliation for promoted dependencies.

Cargo unifies ``default-features`` upwards: when the workspace entry leaves
default features enabled, a member writing ``default-features = false`` on
its ``workspace = true`` line still gets them. The workspace entry therefore
always disables default features, and every member carries an explicit
override copied verbatim from its original declaration. Features are never
merged across members.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .dependency import DependencyKind, DependencyRecord, WorkspaceReference
from .resolver import PromotionDecision

DEFAULT_FEATURES_KEYS = ("default-features", "default_features")


@dataclass(frozen=True)
class FeatureOverride:
    """What one member writes next to ``workspace = true``."""

    member_id: str
    manifest_path: Path
    name: str
    kind: DependencyKind
    default_features: bool
    features: Tuple[str, ...] = ()
    optional: bool = False

    def to_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"workspace": True}
        if self.features:
            entry["features"] = list(self.features)
        entry["default-features"] = self.default_features
        if self.optional:
            entry["optional"] = True
        return entry


def workspace_entry(decision: PromotionDecision) -> Dict[str, Any]:
    """The ``[workspace.dependencies]`` entry for a decision."""
    entry = decision.source.to_entry()
    entry["default-features"] = decision.workspace_default_features
    return entry


def override_for(record: DependencyRecord) -> FeatureOverride:
    """Copy a member's original feature posture into an explicit override."""
    return FeatureOverride(
        member_id=record.member_id,
        manifest_path=record.manifest_path,
        name=record.name,
        kind=record.kind,
        default_features=record.default_features,
        features=record.features,
        optional=record.optional,
    )


def reconcile(decision: PromotionDecision) -> List[FeatureOverride]:
    """One override per contributing member, in contributor order."""
    return [override_for(record) for record in decision.contributors]


def read_default_features(entry: Any) -> Optional[bool]:
    """The ``default-features`` flag written in an entry, if any."""
    if not isinstance(entry, Mapping):
        return None
    for key in DEFAULT_FEATURES_KEYS:
        if key in entry:
            return bool(entry[key])
    return None


def read_features(entry: Any) -> Tuple[str, ...]:
    """Features written in an entry, deduplicated in written order."""
    if not isinstance(entry, Mapping):
        return ()
    features = entry.get("features") or []
    return tuple(dict.fromkeys(str(feature) for feature in features))


def effective_features(
    member_entry: Any, workspace_entry_value: Any = None
) -> Tuple[bool, FrozenSet[str]]:
    """
    Reconstruct the (default_features, features) pair Cargo resolves for a
    member declaration.

    Args:
        member_entry: The member's dependency entry (string or table)
        workspace_entry_value: The root entry it inherits from, when the
            member entry is ``workspace = true``

    Returns:
        Tuple of effective default-features flag and feature set
    """
    member_default = read_default_features(member_entry)
    features = set(read_features(member_entry))

    inherits = isinstance(member_entry, Mapping) and member_entry.get("workspace") is True
    if not inherits:
        return (True if member_default is None else member_default, frozenset(features))

    workspace_default = read_default_features(workspace_entry_value)
    if workspace_default is None:
        workspace_default = True
    features.update(read_features(workspace_entry_value))

    if member_default is None:
        return (workspace_default, frozenset(features))
    # A member can add default features back but never remove inherited ones
    return (workspace_default or member_default, frozenset(features))


def override_for_reference(
    reference: WorkspaceReference, workspace_entry_value: Any
) -> FeatureOverride:
    """
    Pin what an existing ``workspace = true`` declaration resolves to today.

    Used for declarations that keep inheriting a root entry about to be
    rewritten: the override spells out the posture they currently get from
    ``workspace_entry_value`` so the rewrite leaves it unchanged.
    """
    default_features, features = effective_features(reference.entry, workspace_entry_value)
    written = read_features(reference.entry)
    ordered = written + tuple(sorted(features - set(written)))
    optional = isinstance(reference.entry, Mapping) and bool(reference.entry.get("optional"))
    return FeatureOverride(
        member_id=reference.member_id,
        manifest_path=reference.manifest_path,
        name=reference.name,
        kind=reference.kind,
        default_features=default_features,
        features=ordered,
        optional=optional,
    )
