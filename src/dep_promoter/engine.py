"""
Promotion engine.

Threads one workspace snapshot through aggregation, conflict resolution,
feature reconciliation and rewrite planning. The engine does no I/O; the
same snapshot always produces the same plan.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .aggregator import AggregationResult, PromotionGroup, SkipReason, aggregate
from .dependency import DependencyKind, DependencyRecord, WorkspaceSnapshot, check_unique_records
from .error_handling import ErrorCategory, get_error_handler
from .features import FeatureOverride, reconcile
from .planner import RewritePlan, plan_rewrites
from .resolver import PromotionDecision, protect_workspace_references, resolve
from .structured_logging import log_group_skipped, log_plan_complete, log_plan_start


@dataclass(frozen=True)
class PromotionResult:
    """Everything one engine run decided."""

    decisions: Tuple[PromotionDecision, ...]
    skipped_groups: Tuple[PromotionGroup, ...]
    path_dependencies: Tuple[DependencyRecord, ...]
    overrides: Dict[Tuple[str, DependencyKind], List[FeatureOverride]]
    plan: RewritePlan
    minimum_occurrences: int
    duration_ms: int = 0

    @property
    def no_eligible_groups(self) -> bool:
        return not self.decisions

    @property
    def has_changes(self) -> bool:
        return not self.plan.is_empty

    def to_dict(self) -> Dict:
        return {
            "minimum_occurrences": self.minimum_occurrences,
            "promoted": [
                {
                    "name": decision.name,
                    "kind": decision.kind.value,
                    "version": decision.version_requirement,
                    "members": [record.member_id for record in decision.contributors],
                    "divergent_requirements": [
                        {"member": member, "requirement": requirement}
                        for member, requirement in decision.divergent_requirements
                    ],
                }
                for decision in self.decisions
            ],
            "skipped": [
                {
                    "name": group.name,
                    "kind": group.kind.value,
                    "reason": group.skip_reason.value if group.skip_reason else None,
                    "members": [record.member_id for record in group.contributors],
                }
                for group in self.skipped_groups
            ],
            "path_dependencies": [
                {"name": record.name, "kind": record.kind.value, "member": record.member_id}
                for record in self.path_dependencies
            ],
            **self.plan.to_dict(),
        }


class PromotionEngine:
    """
    Plans the promotion of shared dependencies into the workspace table.

    Receives a snapshot, returns a PromotionResult.
    """

    def __init__(self, minimum_occurrences: int = 2):
        if minimum_occurrences < 1:
            raise ValueError("minimum_occurrences must be a positive integer")
        self.minimum_occurrences = minimum_occurrences
        self.error_handler = get_error_handler()

    def run(self, snapshot: WorkspaceSnapshot) -> PromotionResult:
        """
        Run the full pipeline over a snapshot.

        Raises:
            MalformedInputError: If a member declares a (name, kind) twice
        """
        start = time.perf_counter()
        check_unique_records(snapshot.records)
        log_plan_start(
            str(snapshot.root_manifest_path.parent),
            len(snapshot.members),
            len(snapshot.records),
        )

        aggregation: AggregationResult = aggregate(
            snapshot.records, self.minimum_occurrences
        )
        resolution = protect_workspace_references(resolve(aggregation.groups), snapshot)
        overrides = {decision.key: reconcile(decision) for decision in resolution.decisions}
        plan = plan_rewrites(resolution.decisions, overrides, snapshot)

        skipped = tuple(
            sorted(
                aggregation.skipped_groups + list(resolution.rejected),
                key=lambda group: group.sort_key,
            )
        )
        self._report_skipped(skipped)

        duration_ms = int((time.perf_counter() - start) * 1000)
        log_plan_complete(len(resolution.decisions), len(skipped), len(plan.ops), duration_ms)

        return PromotionResult(
            decisions=resolution.decisions,
            skipped_groups=skipped,
            path_dependencies=aggregation.path_dependencies,
            overrides=overrides,
            plan=plan,
            minimum_occurrences=self.minimum_occurrences,
            duration_ms=duration_ms,
        )

    def _report_skipped(self, skipped: Tuple[PromotionGroup, ...]) -> None:
        for group in skipped:
            reason = group.skip_reason.value if group.skip_reason else "unknown"
            log_group_skipped(group.name, group.kind.value, reason, group.occurrences)
            if group.skip_reason is not SkipReason.BELOW_THRESHOLD:
                self.error_handler.info(
                    ErrorCategory.PLANNING,
                    f"Leaving {group.kind.value} dependency '{group.name}' untouched",
                    "engine",
                    "run",
                    details={
                        "reason": reason,
                        "members": [record.member_id for record in group.contributors],
                    },
                )


def plan_promotion(
    snapshot: WorkspaceSnapshot, minimum_occurrences: Optional[int] = None
) -> PromotionResult:
    """Convenience wrapper running the engine with the given threshold."""
    threshold = 2 if minimum_occurrences is None else minimum_occurrences
    return PromotionEngine(threshold).run(snapshot)
