"""
Manifest writing.

Applies a rewrite plan to parsed manifest documents and writes the touched
files back. Keys not named by an op are left as they were.
"""

from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Sequence, Set

import toml

from .error_handling import ErrorCategory, ManifestError, get_error_handler
from .planner import RewriteOp, RewritePlan
from .structured_logging import log_manifest_written
from .workspace import parse_manifest


def inline_table(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Copy an entry into a dict the toml encoder writes as an inline table."""
    table = toml.TomlDecoder().get_empty_inline_table()
    for key, value in entry.items():
        table[key] = list(value) if isinstance(value, (list, tuple)) else value
    return table


def _target_table(
    document: MutableMapping[str, Any], op: RewriteOp
) -> MutableMapping[str, Any]:
    table = document
    for depth, key in enumerate(op.table):
        if key not in table:
            table[key] = {}
        table = table[key]
        if not isinstance(table, dict):
            dotted = ".".join(op.table[: depth + 1])
            raise ManifestError(op.manifest_path, f"'{dotted}' is not a table")
    return table


def apply_ops(document: MutableMapping[str, Any], ops: Sequence[RewriteOp]) -> None:
    """Apply ops targeting one manifest to its parsed document, in order."""
    for op in ops:
        table = _target_table(document, op)
        # Assigning an existing key keeps its position in the table
        table[op.name] = inline_table(op.entry)


def apply_plan(
    documents: MutableMapping[Path, MutableMapping[str, Any]], plan: RewritePlan
) -> Set[Path]:
    """
    Apply a plan to in-memory documents keyed by manifest path.

    Returns:
        Set[Path]: Manifests that were modified

    Raises:
        ManifestError: If an op targets a document that is not loaded
    """
    touched: Set[Path] = set()
    for manifest_path, ops in plan.ops_by_manifest().items():
        if manifest_path not in documents:
            raise ManifestError(manifest_path, "Manifest not loaded")
        apply_ops(documents[manifest_path], ops)
        touched.add(manifest_path)
    return touched


def render_manifest(document: MutableMapping[str, Any]) -> str:
    return toml.dumps(document, encoder=toml.TomlPreserveInlineDictEncoder())


def write_manifests(
    plan: RewritePlan,
    documents: Optional[Dict[Path, MutableMapping[str, Any]]] = None,
) -> List[Path]:
    """
    Apply a plan and write every touched manifest back to disk.

    Each file is read, edited and written independently of the others.

    Args:
        plan: The rewrite plan
        documents: Already-parsed documents to edit; files not present are
            read from disk

    Returns:
        List[Path]: Manifests written, in plan order
    """
    written: List[Path] = []
    documents = documents if documents is not None else {}

    for manifest_path, ops in plan.ops_by_manifest().items():
        document = documents.get(manifest_path)
        if document is None:
            document = parse_manifest(manifest_path)
        apply_ops(document, ops)

        try:
            with open(manifest_path, "w", encoding="utf-8") as f:
                f.write(render_manifest(document))
        except OSError as e:
            get_error_handler().error(
                ErrorCategory.FILESYSTEM,
                f"Failed to write manifest: {e}",
                "writer",
                "write_manifests",
                exception=e,
                details={"file_path": str(manifest_path)},
            )
            raise ManifestError(manifest_path, f"Error writing file: {e}")

        log_manifest_written(str(manifest_path), len(ops))
        written.append(manifest_path)

    return written
