"""
Flat legacy view of an analysis and the versioned stored payload.

Older consumers read a flat camelCase shape (riskScore, criticalIssues,
sections, ...). Stored payloads carry an explicit schema version so rows
written before versioning (bare six-section dicts) can be upgraded on read.
"""

from numbers import Number
from typing import Any, Dict, List, Optional

from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 2

SECTION_KEYS = (
    "metadata",
    "executive_summary",
    "risk_assessment",
    "clause_analysis",
    "legal_insights",
    "export_data",
)


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _score(analysis: Dict[str, Any]) -> Optional[float]:
    metrics = _dict(_dict(analysis.get("executive_summary")).get("key_metrics"))
    for value in (metrics.get("risk_score"), _dict(analysis.get("risk_assessment")).get("overall_score")):
        if isinstance(value, Number) and not isinstance(value, bool):
            return value
    return None


def overall_risk_level(score: Optional[float], rating: Optional[str]) -> str:
    """Critical / High / Medium / Low from score or safety rating, whichever is worse."""
    score = score if score is not None else -1
    if score >= 80 or rating == "Dangerous":
        return "Critical"
    if score >= 60 or rating == "Risky":
        return "High"
    if score >= 40 or rating == "Moderate":
        return "Medium"
    return "Low"


def _critical_issues(analysis: Dict[str, Any]) -> List[Dict[str, Any]]:
    issues = []
    for clause in _list(_dict(analysis.get("clause_analysis")).get("critical_clauses")):
        clause = _dict(clause)
        clause_issues = [str(i) for i in _list(clause.get("issues"))]
        actions = [str(a) for a in _list(clause.get("immediate_actions"))]
        issues.append(
            {
                "category": clause.get("clause_type", "General"),
                "description": clause_issues[0] if clause_issues else "",
                "severity": "Critical",
                "impact": "; ".join(clause_issues[1:]),
                "recommendation": actions[0] if actions else "",
            }
        )
    return issues


def _sections(analysis: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    sections: Dict[str, Dict[str, Any]] = {}
    for category in _list(_dict(analysis.get("risk_assessment")).get("category_breakdown")):
        category = _dict(category)
        name = str(category.get("category", "General"))
        level = category.get("risk_level", "Low")
        key_issues = [str(i) for i in _list(category.get("key_issues"))]
        sections[name] = {
            "keyFindings": key_issues,
            "recommendations": [str(r) for r in _list(category.get("recommendations"))],
            "redFlags": [
                {
                    "type": name,
                    "description": issue,
                    "severity": level,
                    "impact": issue,
                    "recommendation": "",
                }
                for issue in key_issues
                if level in ("High", "Critical")
            ],
        }
    return sections


def to_legacy(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """
    Derive the flat legacy view from a six-section analysis.

    Tolerates partially-shaped input; absent parts become empty values.
    """
    summary = _dict(analysis.get("executive_summary"))
    metrics = _dict(summary.get("key_metrics"))
    legal = _dict(analysis.get("legal_insights"))
    score = _score(analysis)

    recommendations = [
        _dict(rec).get("title") or _dict(rec).get("description", "")
        for rec in _list(legal.get("contextual_recommendations"))
    ]

    return {
        "overall_risk_level": overall_risk_level(score, metrics.get("safety_rating")),
        "riskScore": score if score is not None else 0,
        "executiveSummary": summary.get("summary") or _dict(summary.get("contract_overview")).get(
            "purpose_summary", ""
        ),
        "criticalIssues": _critical_issues(analysis),
        "missingClauses": list(_list(_dict(analysis.get("clause_analysis")).get("missing_clauses"))),
        "overallRecommendations": [r for r in recommendations if r],
        "sections": _sections(analysis),
        "chart_data": list(_list(_dict(analysis.get("export_data")).get("charts_data"))),
    }


def build_payload(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """Versioned payload holding both the analysis and its legacy view."""
    return {
        "schema_version": SCHEMA_VERSION,
        "analysis": analysis,
        "legacy": to_legacy(analysis),
    }


def read_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a stored payload to the current version.

    Untagged payloads are version 1: the bare six-section analysis. A
    missing legacy view is recomputed. The input is not modified.
    """
    if "schema_version" not in payload:
        if not any(key in payload for key in SECTION_KEYS):
            raise ValueError("Payload is neither versioned nor a six-section analysis")
        logger.debug("Upgrading version 1 analysis payload")
        return build_payload(dict(payload))

    version = payload["schema_version"]
    if version != SCHEMA_VERSION:
        raise ValueError(f"Unsupported analysis schema version: {version}")

    analysis = _dict(payload.get("analysis"))
    legacy = payload.get("legacy")
    if not isinstance(legacy, dict) or not legacy:
        legacy = to_legacy(analysis)
    return {"schema_version": SCHEMA_VERSION, "analysis": analysis, "legacy": legacy}
