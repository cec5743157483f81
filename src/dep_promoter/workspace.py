"""
Workspace loading.

Discovers the members of a Cargo workspace, parses their manifests and
normalizes every dependency declaration into a ``DependencyRecord``.
"""

import copy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import toml

from .cli_config import get_config
from .dependency import (
    DEPENDENCY_SECTIONS,
    DependencyKind,
    DependencyRecord,
    GitReference,
    GitReferenceKind,
    GitSource,
    MemberManifest,
    PathSource,
    RegistrySource,
    Source,
    WorkspaceReference,
    WorkspaceSnapshot,
)
from .error_handling import MalformedInputError, ManifestError, log_parsing_error
from .features import effective_features, read_default_features, read_features
from .structured_logging import log_manifest_loaded

MANIFEST_NAME = "Cargo.toml"


def _validate_file_path(file_path: Path) -> Path:
    """
    Validate a manifest path before reading it.

    Args:
        file_path: The file path to validate

    Returns:
        Path: Resolved path object

    Raises:
        ManifestError: If the path is missing, not a file, or too large
    """
    try:
        path = Path(file_path).resolve()
    except (OSError, RuntimeError) as e:
        raise ManifestError(Path(file_path), f"Invalid file path: {e}")

    if not path.exists():
        raise ManifestError(path, "File does not exist")
    if not path.is_file():
        raise ManifestError(path, "Path is not a file")

    config = get_config()
    allowed_extensions = set(config.security.allowed_file_extensions)
    if path.suffix.lower() not in allowed_extensions:
        raise ManifestError(path, f"File type not allowed: {path.suffix}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ManifestError(path, f"Cannot access file: {e}")
    max_file_size = config.security.max_file_size_bytes
    if file_size > max_file_size:
        raise ManifestError(
            path, f"File too large: {file_size} bytes (max: {max_file_size})"
        )

    return path


def _safe_read_file(file_path: Path) -> str:
    validated_path = _validate_file_path(file_path)
    try:
        with open(validated_path, encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        raise ManifestError(validated_path, "File contains invalid UTF-8 characters")
    except PermissionError:
        raise ManifestError(validated_path, "Permission denied reading file")
    except OSError as e:
        raise ManifestError(validated_path, f"Error reading file: {e}")


def parse_manifest(file_path: Path) -> Dict[str, Any]:
    """
    Read and parse a Cargo.toml file.

    Raises:
        ManifestError: If the file cannot be read or is not valid TOML
    """
    content = _safe_read_file(file_path)
    try:
        return toml.loads(content)
    except toml.TomlDecodeError as e:
        log_parsing_error(
            f"Invalid TOML format in {MANIFEST_NAME}: {e}",
            "workspace",
            "parse_manifest",
            file_path=str(file_path),
            exception=e,
        )
        raise ManifestError(Path(file_path), f"Invalid TOML format: {e}")


def _table(document: Mapping[str, Any], key: str, path: Path) -> Dict[str, Any]:
    value = document.get(key, {})
    if not isinstance(value, dict):
        raise ManifestError(path, f"'{key}' is not a table")
    return value


def workspace_dependencies_table(
    root_document: Mapping[str, Any], root_path: Path
) -> Dict[str, Any]:
    """The root manifest's ``[workspace.dependencies]`` table, possibly empty."""
    workspace = _table(root_document, "workspace", root_path)
    dependencies = workspace.get("dependencies", {})
    if not isinstance(dependencies, dict):
        raise ManifestError(root_path, "'workspace.dependencies' is not a table")
    return dependencies


def discover_members(root_path: Path, root_document: Mapping[str, Any]) -> List[Path]:
    """
    Expand ``[workspace] members`` globs into member manifest paths.

    Entries matched by ``exclude`` are dropped. The root manifest itself is
    a member when it declares a ``[package]``.

    Returns:
        List[Path]: Member manifest paths, sorted
    """
    root_dir = root_path.parent
    workspace = _table(root_document, "workspace", root_path)
    if "workspace" not in root_document and "package" not in root_document:
        raise ManifestError(root_path, "Manifest has neither [workspace] nor [package]")

    excluded = [
        (root_dir / pattern).resolve() for pattern in workspace.get("exclude", [])
    ]

    manifests = set()
    for pattern in workspace.get("members", []):
        for candidate in sorted(root_dir.glob(pattern)):
            manifest = candidate / MANIFEST_NAME
            if not candidate.is_dir() or not manifest.is_file():
                continue
            resolved = candidate.resolve()
            if any(resolved == path or path in resolved.parents for path in excluded):
                continue
            manifests.add(manifest.resolve())

    if "package" in root_document:
        manifests.add(root_path.resolve())

    return sorted(manifests, key=str)


def member_id_for(manifest_path: Path, document: Mapping[str, Any]) -> str:
    package = document.get("package")
    if isinstance(package, dict) and isinstance(package.get("name"), str):
        return package["name"]
    return manifest_path.parent.name


def source_from_entry(name: str, entry: Any, manifest_path: Path) -> Source:
    """
    Build the source variant an entry describes.

    Raises:
        ManifestError: If the entry is neither a string nor a table
    """
    if isinstance(entry, str):
        return RegistrySource(version_requirement=entry)
    if not isinstance(entry, Mapping):
        raise ManifestError(manifest_path, f"Unsupported declaration for '{name}'")

    version = entry.get("version")
    if "path" in entry:
        return PathSource(path=str(entry["path"]), version_requirement=version)

    if "git" in entry:
        reference = GitReference()
        for ref_kind in (GitReferenceKind.BRANCH, GitReferenceKind.TAG, GitReferenceKind.REV):
            if ref_kind.value in entry:
                reference = GitReference(ref_kind, str(entry[ref_kind.value]))
                break
        return GitSource(
            repository_url=str(entry["git"]),
            reference=reference,
            version_requirement=version,
            package=entry.get("package"),
        )

    return RegistrySource(
        version_requirement=version,
        package=entry.get("package"),
        registry=entry.get("registry"),
    )


def parse_dependency_entry(
    name: str,
    entry: Any,
    kind: DependencyKind,
    member_id: str,
    manifest_path: Path,
    order: int,
    workspace_dependencies: Mapping[str, Any],
) -> DependencyRecord:
    """
    Normalize one dependency declaration.

    A ``workspace = true`` entry is resolved against the root table, and its
    feature posture is the one Cargo would actually apply.

    Raises:
        MalformedInputError: If an inherited entry has no root counterpart
        ManifestError: If the entry is not a string or table
    """
    if isinstance(entry, Mapping) and "features" in entry:
        if not isinstance(entry["features"], list):
            raise ManifestError(manifest_path, f"'features' of '{name}' is not an array")

    inherited = isinstance(entry, Mapping) and entry.get("workspace") is True
    if inherited:
        root_entry = workspace_dependencies.get(name)
        if root_entry is None:
            raise MalformedInputError(
                member_id,
                name,
                kind.value,
                "workspace dependency missing from [workspace.dependencies]",
            )
        source = source_from_entry(name, root_entry, manifest_path)
        default_features, feature_set = effective_features(entry, root_entry)
        written = read_features(entry)
        features = written + tuple(
            sorted(feature for feature in feature_set if feature not in written)
        )
    else:
        source = source_from_entry(name, entry, manifest_path)
        default_features, _ = effective_features(entry)
        features = read_features(entry)

    optional = bool(entry.get("optional", False)) if isinstance(entry, Mapping) else False
    return DependencyRecord(
        member_id=member_id,
        manifest_path=manifest_path,
        name=name,
        kind=kind,
        source=source,
        features=features,
        default_features=default_features,
        default_features_explicit=read_default_features(entry) is not None,
        optional=optional,
        first_seen_order=order,
        inherited=inherited,
    )


def _target_tables(document: Mapping[str, Any], manifest_path: Path):
    """Yield (table path, kind, table) for every ``[target.<cfg>.*dependencies]`` table."""
    targets = _table(document, "target", manifest_path)
    for platform, platform_tables in targets.items():
        if not isinstance(platform_tables, dict):
            raise ManifestError(manifest_path, f"'target.{platform}' is not a table")
        for section in DEPENDENCY_SECTIONS:
            table = _table(platform_tables, section, manifest_path)
            yield ("target", platform, section), DependencyKind.from_section(section), table


def _target_reference(
    name: str,
    entry: Any,
    table_path: Tuple[str, ...],
    kind: DependencyKind,
    member_id: str,
    manifest_path: Path,
    workspace_dependencies: Mapping[str, Any],
) -> Optional[WorkspaceReference]:
    if not (isinstance(entry, Mapping) and entry.get("workspace") is True):
        return None
    if "features" in entry and not isinstance(entry["features"], list):
        raise ManifestError(manifest_path, f"'features' of '{name}' is not an array")
    root_entry = workspace_dependencies.get(name)
    if root_entry is None:
        raise MalformedInputError(
            member_id,
            name,
            kind.value,
            "workspace dependency missing from [workspace.dependencies]",
        )
    return WorkspaceReference(
        member_id=member_id,
        manifest_path=manifest_path,
        table=table_path,
        name=name,
        kind=kind,
        entry=copy.deepcopy(entry),
        source=source_from_entry(name, root_entry, manifest_path),
    )


def build_snapshot(
    root_path: Path,
    root_document: Mapping[str, Any],
    member_documents: Mapping[Path, Mapping[str, Any]],
) -> WorkspaceSnapshot:
    """
    Build a snapshot from already-parsed manifests.

    Members are scanned in manifest path order, sections in kind order and
    entries in written order; that scan position is each record's
    ``first_seen_order``. Target-specific tables are not promoted, but their
    ``workspace = true`` entries are recorded as references so that a
    rewritten root entry never changes what they resolve to.
    """
    workspace_dependencies = copy.deepcopy(
        workspace_dependencies_table(root_document, root_path)
    )

    members: List[MemberManifest] = []
    records: List[DependencyRecord] = []
    references: List[WorkspaceReference] = []
    order = 0

    for manifest_path in sorted(member_documents, key=str):
        document = member_documents[manifest_path]
        member_id = member_id_for(manifest_path, document)
        tables: Dict[str, Dict[str, Any]] = {}

        for section in DEPENDENCY_SECTIONS:
            table = _table(document, section, manifest_path)
            tables[section] = copy.deepcopy(table)
            kind = DependencyKind.from_section(section)
            for name, entry in table.items():
                record = parse_dependency_entry(
                    name,
                    entry,
                    kind,
                    member_id,
                    manifest_path,
                    order,
                    workspace_dependencies,
                )
                records.append(record)
                if record.inherited:
                    references.append(
                        WorkspaceReference(
                            member_id=member_id,
                            manifest_path=manifest_path,
                            table=(section,),
                            name=name,
                            kind=kind,
                            entry=copy.deepcopy(entry),
                            source=record.source,
                        )
                    )
                order += 1

        for table_path, kind, table in _target_tables(document, manifest_path):
            for name, entry in table.items():
                reference = _target_reference(
                    name,
                    entry,
                    table_path,
                    kind,
                    member_id,
                    manifest_path,
                    workspace_dependencies,
                )
                if reference is not None:
                    references.append(reference)

        log_manifest_loaded(str(manifest_path), sum(len(t) for t in tables.values()))
        members.append(MemberManifest(member_id, manifest_path, tables))

    return WorkspaceSnapshot(
        root_manifest_path=root_path,
        members=tuple(members),
        records=tuple(records),
        workspace_dependencies=workspace_dependencies,
        references=tuple(references),
    )


def find_root_manifest(workspace_root: Optional[Path] = None) -> Path:
    """Locate the root Cargo.toml for a workspace directory (default: cwd)."""
    root_dir = Path(workspace_root) if workspace_root else Path.cwd()
    if root_dir.is_file():
        return root_dir.resolve()
    manifest = root_dir / MANIFEST_NAME
    if not manifest.is_file():
        raise ManifestError(manifest, f"No {MANIFEST_NAME} found in workspace root")
    return manifest.resolve()


def load_documents(
    workspace_root: Optional[Path] = None,
) -> Tuple[Path, Dict[str, Any], Dict[Path, Dict[str, Any]]]:
    """Read the root manifest and every member manifest from disk."""
    root_path = find_root_manifest(workspace_root)
    root_document = parse_manifest(root_path)

    member_documents: Dict[Path, Dict[str, Any]] = {}
    for manifest_path in discover_members(root_path, root_document):
        if manifest_path == root_path:
            member_documents[manifest_path] = root_document
        else:
            member_documents[manifest_path] = parse_manifest(manifest_path)
    return root_path, root_document, member_documents


def load_workspace(workspace_root: Optional[Path] = None) -> WorkspaceSnapshot:
    """
    Load a workspace snapshot from disk.

    Args:
        workspace_root: Workspace directory or root manifest path

    Returns:
        WorkspaceSnapshot: Parsed members and dependency records

    Raises:
        ManifestError: If a manifest is missing or invalid
        MalformedInputError: If a member declaration cannot be normalized
    """
    root_path, root_document, member_documents = load_documents(workspace_root)
    return build_snapshot(root_path, root_document, member_documents)
