"""
Dependency record model.

One ``DependencyRecord`` is one dependency as declared by one workspace
member. Sources are a closed set of variants, each with its own
compatibility rule.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from .error_handling import MalformedInputError


class DependencyKind(Enum):
    """Dependency kinds, in canonical order."""

    NORMAL = "normal"
    BUILD = "build"
    DEV = "dev"

    @property
    def section(self) -> str:
        """Manifest table holding dependencies of this kind."""
        return _KIND_SECTIONS[self]

    @property
    def order(self) -> int:
        return _KIND_ORDER[self]

    @classmethod
    def from_section(cls, section: str) -> "DependencyKind":
        for kind, name in _KIND_SECTIONS.items():
            if name == section:
                return kind
        raise ValueError(f"Unknown dependency section: {section}")


_KIND_SECTIONS = {
    DependencyKind.NORMAL: "dependencies",
    DependencyKind.BUILD: "build-dependencies",
    DependencyKind.DEV: "dev-dependencies",
}
_KIND_ORDER = {kind: index for index, kind in enumerate(DependencyKind)}

DEPENDENCY_SECTIONS = tuple(kind.section for kind in DependencyKind)


class GitReferenceKind(Enum):
    """Which git reference a dependency pins."""

    DEFAULT = "default"
    BRANCH = "branch"
    TAG = "tag"
    REV = "rev"


@dataclass(frozen=True)
class GitReference:
    kind: GitReferenceKind = GitReferenceKind.DEFAULT
    value: Optional[str] = None


def _normalize_git_url(url: str) -> str:
    normalized = url.strip().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized.lower()


@dataclass(frozen=True)
class RegistrySource:
    """Dependency resolved from a crate registry."""

    version_requirement: Optional[str]
    package: Optional[str] = None
    registry: Optional[str] = None

    def is_compatible(self, other: "Source", name: str) -> bool:
        """Same crate on the same registry; the requirement is not compared."""
        if not isinstance(other, RegistrySource):
            return False
        return (self.package or name, self.registry) == (
            other.package or name,
            other.registry,
        )

    def to_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {}
        if self.version_requirement is not None:
            entry["version"] = self.version_requirement
        if self.package is not None:
            entry["package"] = self.package
        if self.registry is not None:
            entry["registry"] = self.registry
        return entry


@dataclass(frozen=True)
class GitSource:
    """Dependency fetched from a git repository."""

    repository_url: str
    reference: GitReference = field(default_factory=GitReference)
    version_requirement: Optional[str] = None
    package: Optional[str] = None

    def is_compatible(self, other: "Source", name: str) -> bool:
        """Same repository and same reference."""
        if not isinstance(other, GitSource):
            return False
        return (
            _normalize_git_url(self.repository_url),
            self.reference,
            self.package or name,
        ) == (
            _normalize_git_url(other.repository_url),
            other.reference,
            other.package or name,
        )

    def to_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"git": self.repository_url}
        if self.reference.kind is not GitReferenceKind.DEFAULT:
            entry[self.reference.kind.value] = self.reference.value
        if self.version_requirement is not None:
            entry["version"] = self.version_requirement
        if self.package is not None:
            entry["package"] = self.package
        return entry


@dataclass(frozen=True)
class PathSource:
    """Dependency on a local crate; member-relative, never promoted."""

    path: str
    version_requirement: Optional[str] = None

    def is_compatible(self, other: "Source", name: str) -> bool:
        return False

    def to_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"path": self.path}
        if self.version_requirement is not None:
            entry["version"] = self.version_requirement
        return entry


Source = Union[RegistrySource, GitSource, PathSource]


def sources_compatible(first: Source, second: Source, name: str) -> bool:
    """Variant-aware compatibility check; sources of different variants never match."""
    if type(first) is not type(second):
        return False
    return first.is_compatible(second, name)


def source_label(source: Source) -> str:
    """Short human-readable description of a source."""
    if isinstance(source, RegistrySource):
        label = source.version_requirement or "*"
        if source.registry:
            label += f" ({source.registry})"
        return label
    if isinstance(source, GitSource):
        label = f"git {source.repository_url}"
        if source.reference.kind is not GitReferenceKind.DEFAULT:
            label += f" {source.reference.kind.value}={source.reference.value}"
        return label
    return f"path {source.path}"


@dataclass(frozen=True)
class DependencyRecord:
    """A single dependency declaration as seen by one member."""

    member_id: str
    manifest_path: Path
    name: str
    kind: DependencyKind
    source: Source
    features: Tuple[str, ...] = ()
    default_features: bool = True
    default_features_explicit: bool = False
    optional: bool = False
    first_seen_order: int = 0
    inherited: bool = False

    @property
    def feature_set(self) -> FrozenSet[str]:
        return frozenset(self.features)

    @property
    def key(self) -> Tuple[str, DependencyKind]:
        return (self.name, self.kind)

    @property
    def scan_key(self) -> Tuple[int, str]:
        """Ordering used for first-seen selection; ties broken by manifest path."""
        return (self.first_seen_order, str(self.manifest_path))


@dataclass(frozen=True)
class WorkspaceReference:
    """
    A ``workspace = true`` declaration, wherever it appears in a member.

    ``table`` is the path of the table holding the entry, e.g.
    ``("dev-dependencies",)`` or ``("target", "cfg(unix)", "dependencies")``.
    ``source`` is the root entry the declaration resolves to.
    """

    member_id: str
    manifest_path: Path
    table: Tuple[str, ...]
    name: str
    kind: DependencyKind
    entry: Any
    source: Source

    @property
    def location(self) -> Tuple[Path, Tuple[str, ...], str]:
        return (self.manifest_path, self.table, self.name)


@dataclass(frozen=True)
class MemberManifest:
    """A workspace member and its dependency tables as authored."""

    member_id: str
    manifest_path: Path
    dependency_tables: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def current_entry(self, kind: DependencyKind, name: str) -> Any:
        return self.dependency_tables.get(kind.section, {}).get(name)


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """Immutable view of the workspace the engine plans against."""

    root_manifest_path: Path
    members: Tuple[MemberManifest, ...]
    records: Tuple[DependencyRecord, ...]
    workspace_dependencies: Dict[str, Any] = field(default_factory=dict)
    references: Tuple[WorkspaceReference, ...] = ()

    def member(self, manifest_path: Path) -> Optional[MemberManifest]:
        for member in self.members:
            if member.manifest_path == manifest_path:
                return member
        return None

    def references_to(self, name: str) -> Tuple[WorkspaceReference, ...]:
        return tuple(reference for reference in self.references if reference.name == name)


def check_unique_records(records) -> None:
    """
    Reject duplicate (name, kind) declarations within one member.

    Raises:
        MalformedInputError: On the first duplicate found
    """
    seen = set()
    for record in records:
        key = (record.manifest_path, record.name, record.kind)
        if key in seen:
            raise MalformedInputError(record.member_id, record.name, record.kind.value)
        seen.add(key)
