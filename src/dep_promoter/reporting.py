"""
Console reporting for promotion results.

Provides color-coded output using the Rich library.
"""

from pathlib import Path
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .aggregator import PromotionGroup, SkipReason
from .dependency import source_label
from .engine import PromotionResult
from .planner import RewriteOp

SKIP_REASON_TEXT = {
    SkipReason.BELOW_THRESHOLD: "used by too few members",
    SkipReason.INCOMPATIBLE_SOURCES: "members use different sources",
    SkipReason.ROOT_CONFLICT: "workspace entry conflicts with existing declarations",
}


def _format_entry(entry: Dict) -> str:
    parts = []
    for key, value in entry.items():
        if isinstance(value, bool):
            parts.append(f"{key} = {str(value).lower()}")
        elif isinstance(value, list):
            items = ", ".join(f'"{item}"' for item in value)
            parts.append(f"{key} = [{items}]")
        else:
            parts.append(f'{key} = "{value}"')
    return "{ " + ", ".join(parts) + " }"


def _relative(path: Path, root: Optional[Path]) -> str:
    if root is not None:
        try:
            return str(path.relative_to(root))
        except ValueError:
            pass
    return str(path)


class PromotionReporter:
    """Formats and displays promotion plans."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def print_result(
        self,
        result: PromotionResult,
        workspace_root: Optional[Path] = None,
        dry_run: bool = False,
    ) -> None:
        """
        Print a promotion result.

        Args:
            result: The engine result to display
            workspace_root: Directory used to shorten manifest paths
            dry_run: Whether the plan was only computed, not written
        """
        self.console.print()
        self._print_header(workspace_root, dry_run)

        if result.no_eligible_groups:
            self.console.print(
                "ℹ️  No common dependencies found across workspace members.",
                style="yellow",
            )
        else:
            self._print_promoted(result)

        if result.skipped_groups and (self.verbose or self._notable(result.skipped_groups)):
            self._print_skipped(result.skipped_groups)

        if self.verbose and result.path_dependencies:
            names = sorted({record.name for record in result.path_dependencies})
            self.console.print(
                f"[dim]Path dependencies left as authored: {escape(', '.join(names))}[/dim]"
            )

        self._print_changes(result, workspace_root, dry_run)

    def _notable(self, groups) -> List[PromotionGroup]:
        return [g for g in groups if g.skip_reason is not SkipReason.BELOW_THRESHOLD]

    def _print_header(self, workspace_root: Optional[Path], dry_run: bool) -> None:
        mode = " (dry run)" if dry_run else ""
        self.console.print(
            Panel(
                f"📦 Workspace: {escape(str(workspace_root or Path.cwd()))}{mode}",
                title="[bold blue]dep-promoter[/bold blue]",
                border_style="blue",
            )
        )

    def _print_promoted(self, result: PromotionResult) -> None:
        table = Table(
            title=f"🔗 Promoted dependencies (min occurrences: {result.minimum_occurrences})",
            box=box.ROUNDED,
            title_style="bold cyan",
        )
        table.add_column("Dependency", style="bold")
        table.add_column("Kind")
        table.add_column("Source")
        table.add_column("Members", justify="center")

        divergent = []
        for decision in result.decisions:
            table.add_row(
                decision.name,
                decision.kind.value,
                source_label(decision.source),
                str(len(decision.contributors)),
            )
            if decision.divergent_requirements:
                divergent.append(decision)

        self.console.print(table)

        for decision in divergent:
            others = ", ".join(
                f"{member} wants {requirement}"
                for member, requirement in decision.divergent_requirements
            )
            self.console.print(
                f"⚠️  {decision.name}: promoted {source_label(decision.source)} "
                f"(first seen); review manually, {others}",
                style="yellow",
                markup=False,
            )

    def _print_skipped(self, groups) -> None:
        table = Table(title="⏭️  Left untouched", box=box.SIMPLE, title_style="bold")
        table.add_column("Dependency")
        table.add_column("Kind")
        table.add_column("Reason")
        table.add_column("Members")

        for group in groups:
            if not self.verbose and group.skip_reason is SkipReason.BELOW_THRESHOLD:
                continue
            table.add_row(
                group.name,
                group.kind.value,
                SKIP_REASON_TEXT.get(group.skip_reason, "unknown"),
                ", ".join(record.member_id for record in group.contributors),
            )
        self.console.print(table)

    def _print_op(self, op: RewriteOp) -> None:
        target = ".".join(op.table)
        self.console.print(
            f"     [dim]{escape(target)}.{escape(op.name)} = {escape(_format_entry(op.entry))}[/dim]"
        )

    def _print_changes(
        self, result: PromotionResult, workspace_root: Optional[Path], dry_run: bool
    ) -> None:
        if result.plan.is_empty:
            self.console.print("✅ All manifests are already up to date.", style="green")
            return

        verb = "Would update" if dry_run else "Updated"
        partitions = result.plan.ops_by_manifest()
        for manifest_path, ops in partitions.items():
            self.console.print(
                f"  - {verb} {escape(_relative(manifest_path, workspace_root))} "
                f"({len(ops)} {'entry' if len(ops) == 1 else 'entries'})"
            )
            if self.verbose:
                for op in ops:
                    self._print_op(op)

        style = "yellow" if dry_run else "green"
        self.console.print(
            f"{'📝' if dry_run else '✅'} {verb} {len(partitions)} Cargo.toml "
            f"file{'s' if len(partitions) != 1 else ''} with workspace dependencies.",
            style=style,
        )
