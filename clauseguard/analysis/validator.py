"""Structural check of a parsed analysis before it is persisted."""

import math
from numbers import Number
from typing import Any, Callable, List, Tuple

from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_SECTIONS = (
    "metadata",
    "executive_summary",
    "risk_assessment",
    "clause_analysis",
    "legal_insights",
    "export_data",
)


def _is_number(value: Any) -> bool:
    # 1e999 parses to inf, so finiteness is checked here as well
    return isinstance(value, Number) and not isinstance(value, bool) and math.isfinite(value)


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


# Sampled nested leaves: (dotted path, type check, expected type name)
REQUIRED_PATHS: Tuple[Tuple[str, Callable[[Any], bool], str], ...] = (
    ("executive_summary.key_metrics.risk_score", _is_number, "number"),
    ("executive_summary.key_metrics.safety_rating", _is_str, "string"),
    ("risk_assessment.overall_score", _is_number, "number"),
    ("risk_assessment.category_breakdown", _is_list, "array"),
    ("clause_analysis.missing_clauses", _is_list, "array"),
    ("clause_analysis.critical_clauses", _is_list, "array"),
    ("legal_insights.contextual_recommendations", _is_list, "array"),
    ("legal_insights.action_items", _is_list, "array"),
    ("export_data.charts_data", _is_list, "array"),
)

_MISSING = object()


def _lookup(candidate: Any, path: str) -> Any:
    current = candidate
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def find_violations(candidate: Any) -> List[str]:
    """List every missing section and missing or mistyped required path."""
    if not isinstance(candidate, dict):
        return ["<root>: expected object"]

    violations = [
        f"{section}: missing"
        for section in REQUIRED_SECTIONS
        if not isinstance(candidate.get(section), dict)
    ]

    for path, check, type_name in REQUIRED_PATHS:
        value = _lookup(candidate, path)
        if value is _MISSING:
            violations.append(f"{path}: missing")
        elif not check(value):
            violations.append(f"{path}: expected {type_name}")

    return violations


def validate(candidate: Any) -> bool:
    """True when the candidate has the full six-section analysis shape."""
    violations = find_violations(candidate)
    if violations:
        logger.debug("Analysis failed structural check", extra={"violations": violations[:10]})
        return False
    return True
