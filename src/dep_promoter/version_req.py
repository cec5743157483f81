"""
Cargo version requirement parsing and comparison.

Cargo requirements (``1.0``, ``^1.2``, ``~0.3.1``, ``>=1, <2``, ``1.*``) are
expanded into their lower/upper bound comparators so that syntactically
distinct but semantically identical requirements compare equal. A bare
version means the same as its caret form.

This is requirement comparison only: no version resolution and no range
intersection is attempted.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class RequirementOperator(str, Enum):
    """Comparison operators a requirement expands into."""

    EQ = "="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


@dataclass(frozen=True)
class PartialVersion:
    """
    A version as written in a requirement; minor and patch may be omitted.

    ``pre`` holds the pre-release identifier without the leading ``-``.
    """

    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None
    pre: str = ""

    def filled(self) -> Tuple[int, int, int, str]:
        """Version tuple with omitted components set to zero."""
        return (self.major, self.minor or 0, self.patch or 0, self.pre)


Bound = Tuple[RequirementOperator, Tuple[int, int, int, str]]

_COMPARATOR_RE = re.compile(
    r"^(?P<op>\^|~|=|>=|<=|>|<)?\s*"
    r"(?P<major>\d+|\*|x|X)"
    r"(?:\.(?P<minor>\d+|\*|x|X))?"
    r"(?:\.(?P<patch>\d+|\*|x|X))?"
    r"(?:-(?P<pre>[0-9A-Za-z.\-]+))?"
    r"(?:\+[0-9A-Za-z.\-]+)?$"
)
_WILDCARDS = {"*", "x", "X"}


def _component(value: Optional[str]) -> Optional[int]:
    if value is None or value in _WILDCARDS:
        return None
    return int(value)


def _caret_bounds(version: PartialVersion) -> List[Bound]:
    lower = (RequirementOperator.GE, version.filled())
    major, minor, patch = version.major, version.minor, version.patch
    if major > 0 or minor is None:
        upper = (major + 1, 0, 0, "")
    elif minor > 0 or patch is None:
        upper = (0, minor + 1, 0, "")
    else:
        upper = (0, 0, patch + 1, "")
    return [lower, (RequirementOperator.LT, upper)]


def _tilde_bounds(version: PartialVersion) -> List[Bound]:
    lower = (RequirementOperator.GE, version.filled())
    if version.minor is None:
        upper = (version.major + 1, 0, 0, "")
    else:
        upper = (version.major, version.minor + 1, 0, "")
    return [lower, (RequirementOperator.LT, upper)]


def _exact_bounds(version: PartialVersion) -> List[Bound]:
    if version.patch is not None:
        return [(RequirementOperator.EQ, version.filled())]
    return _tilde_bounds(version)


def _comparator_bounds(op: str, version: PartialVersion) -> List[Bound]:
    """Expand one comparator into its bound comparators."""
    if op in ("", "^"):
        return _caret_bounds(version)
    if op == "~":
        return _tilde_bounds(version)
    if op == "=":
        return _exact_bounds(version)

    major, minor, patch = version.major, version.minor, version.patch
    if op == ">=":
        return [(RequirementOperator.GE, version.filled())]
    if op == "<":
        return [(RequirementOperator.LT, version.filled())]
    if op == ">":
        if patch is not None:
            return [(RequirementOperator.GT, version.filled())]
        if minor is not None:
            return [(RequirementOperator.GE, (major, minor + 1, 0, ""))]
        return [(RequirementOperator.GE, (major + 1, 0, 0, ""))]
    # "<="
    if patch is not None:
        return [(RequirementOperator.LE, version.filled())]
    if minor is not None:
        return [(RequirementOperator.LT, (major, minor + 1, 0, ""))]
    return [(RequirementOperator.LT, (major + 1, 0, 0, ""))]


def parse_comparator(text: str) -> List[Bound]:
    """
    Parse a single comparator into bound comparators.

    Args:
        text: Comparator such as ``"^1.2"``, ``">=0.3"`` or ``"1.*"``

    Returns:
        List of bounds; empty for the match-everything wildcard ``*``

    Raises:
        ValueError: If the comparator is not valid Cargo syntax
    """
    match = _COMPARATOR_RE.match(text.strip())
    if not match:
        raise ValueError(f"Invalid version requirement: '{text}'")

    op = match.group("op") or ""
    raw_major, raw_minor, raw_patch = (
        match.group("major"),
        match.group("minor"),
        match.group("patch"),
    )

    if raw_major in _WILDCARDS:
        if op or raw_minor is not None:
            raise ValueError(f"Invalid wildcard requirement: '{text}'")
        return []

    major, minor, patch = (
        int(raw_major),
        _component(raw_minor),
        _component(raw_patch),
    )
    if minor is None and patch is not None:
        raise ValueError(f"Invalid wildcard requirement: '{text}'")

    has_wildcard = raw_minor in _WILDCARDS or raw_patch in _WILDCARDS
    if has_wildcard:
        # 1.* and 1.2.* behave like =1 and =1.2
        if op not in ("", "="):
            raise ValueError(f"Wildcards cannot be combined with '{op}': '{text}'")
        op = "="

    version = PartialVersion(major, minor, patch, match.group("pre") or "")
    return _comparator_bounds(op, version)


def normalize_requirement(requirement: str) -> FrozenSet[Bound]:
    """
    Normalize a comma-separated Cargo requirement to its set of bounds.

    Raises:
        ValueError: If any comparator is invalid
    """
    bounds: List[Bound] = []
    parts = [part for part in requirement.split(",") if part.strip()]
    if not parts:
        raise ValueError("Empty version requirement")
    for part in parts:
        bounds.extend(parse_comparator(part))
    return frozenset(bounds)


def requirements_equivalent(first: Optional[str], second: Optional[str]) -> bool:
    """
    Check whether two requirement strings mean the same thing.

    ``None`` (no requirement written) only equals ``None``. Text that cannot
    be parsed is compared verbatim after trimming whitespace.
    """
    if first is None or second is None:
        return first is None and second is None
    if first.strip() == second.strip():
        return True
    try:
        return normalize_requirement(first) == normalize_requirement(second)
    except ValueError:
        return False
