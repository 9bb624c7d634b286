"""
Contract analysis: model output handling, local fallback and orchestration.
"""

from clauseguard.analysis.legacy_adapter import build_payload, read_payload, to_legacy
from clauseguard.analysis.local_analyzer import LocalAnalyzer
from clauseguard.analysis.orchestrator import ContractAnalysisService, create_analysis_service
from clauseguard.analysis.sanitizer import parse_model_output, repair, sanitize
from clauseguard.analysis.validator import find_violations, validate

__all__ = [
    "ContractAnalysisService",
    "LocalAnalyzer",
    "build_payload",
    "create_analysis_service",
    "find_violations",
    "parse_model_output",
    "read_payload",
    "repair",
    "sanitize",
    "to_legacy",
    "validate",
]
