"""
Deterministic pattern-based contract analysis.

Used whenever the model path fails, times out or returns unusable output.
The analyzer checks six standard clause categories by keyword pattern,
derives a risk score from the ones that are missing and renders the full
six-section analysis shape so callers never have to care which path
produced a result.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from clauseguard.analysis.schema import (
    ActionItem,
    AnalysisMetadata,
    AnalysisResult,
    AnalyzedClause,
    ChartData,
    ClauseAnalysis,
    ClauseSection,
    ContractAnnotation,
    ContractOverview,
    CriticalClause,
    ExecutiveSummary,
    ExportData,
    JurisdictionAdvice,
    KeyMetrics,
    LegalInsights,
    MissingClause,
    QuickInsights,
    Recommendation,
    RiskAssessment,
    RiskCategory,
    RiskDistribution,
    RoleSpecificAdvice,
)
from clauseguard.document_processor.extractor import count_words
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

BASE_SCORE = 20
SNIPPET_RADIUS = 160


@dataclass(frozen=True)
class ClauseCategory:
    """A standard clause category and what to say when it is missing."""

    key: str
    name: str
    pattern: re.Pattern
    penalty: int
    importance: str
    description: str
    risk_if_missing: str
    suggested_language: str
    recommendation_category: str
    implementation_steps: Tuple[str, ...] = field(default_factory=tuple)


CLAUSE_CATEGORIES: Tuple[ClauseCategory, ...] = (
    ClauseCategory(
        key="payment_terms",
        name="Payment Terms",
        pattern=re.compile(
            r"payment|fee|cost|price|amount|compensation|salary|wage|invoice|billing", re.IGNORECASE
        ),
        penalty=30,
        importance="High",
        description="Defines amounts, schedules and methods of payment between the parties.",
        risk_if_missing="Disputes about compensation amounts, payment schedules and financial obligations.",
        suggested_language=(
            "Client shall pay Provider the fees set out in Schedule A within thirty (30) days "
            "of receipt of a valid invoice."
        ),
        recommendation_category="Risk Mitigation",
        implementation_steps=(
            "Add comprehensive payment terms with specific amounts",
            "Define clear payment schedules and due dates",
            "Specify accepted payment methods and late payment consequences",
        ),
    ),
    ClauseCategory(
        key="termination",
        name="Termination Clause",
        pattern=re.compile(r"terminat(e|ion)|end|expire|cancel|dissolution", re.IGNORECASE),
        penalty=25,
        importance="High",
        description="Sets out how and when either party may end the agreement.",
        risk_if_missing="No clear mechanism for either party to exit the agreement.",
        suggested_language=(
            "Either party may terminate this Agreement upon thirty (30) days' written notice "
            "to the other party."
        ),
        recommendation_category="Protection",
        implementation_steps=(
            "Add a termination clause with clear conditions",
            "Define reasonable notice periods",
            "Specify post-termination obligations",
        ),
    ),
    ClauseCategory(
        key="liability",
        name="Liability Provisions",
        pattern=re.compile(
            r"liability|liable|responsible|damages|indemnif|limitation|disclaim", re.IGNORECASE
        ),
        penalty=25,
        importance="High",
        description="Allocates responsibility for losses and limits exposure to damages.",
        risk_if_missing="Undefined and potentially unlimited exposure to damages for both parties.",
        suggested_language=(
            "Neither party shall be liable for indirect or consequential damages, and each party's "
            "total liability shall not exceed the fees paid in the preceding twelve (12) months."
        ),
        recommendation_category="Risk Mitigation",
        implementation_steps=(
            "Add liability limitation clauses with specific caps",
            "Include balanced indemnification provisions",
            "Define responsibility for different types of damages",
        ),
    ),
    ClauseCategory(
        key="governing_law",
        name="Governing Law",
        pattern=re.compile(
            r"governing law|jurisdiction|court|legal|dispute resolution|arbitration", re.IGNORECASE
        ),
        penalty=15,
        importance="Medium",
        description="Names the law that governs the agreement and the forum for disputes.",
        risk_if_missing="Uncertainty about which laws apply and where disputes are resolved.",
        suggested_language=(
            "This Agreement shall be governed by and construed in accordance with the laws of "
            "[Jurisdiction]."
        ),
        recommendation_category="Compliance",
        implementation_steps=(
            "Add a governing law clause naming the applicable jurisdiction",
            "Define the forum for disputes",
            "Consider mediation or arbitration before litigation",
        ),
    ),
    ClauseCategory(
        key="notice",
        name="Notice Provisions",
        pattern=re.compile(r"notice|notify|inform|written|email|address", re.IGNORECASE),
        penalty=10,
        importance="Medium",
        description="Specifies how formal communications between the parties must be delivered.",
        risk_if_missing="Disputes about whether notices were validly given.",
        suggested_language=(
            "All notices under this Agreement shall be in writing and delivered to the addresses "
            "set out above or by email with confirmation of receipt."
        ),
        recommendation_category="Clarity",
        implementation_steps=(
            "Add a notice clause naming delivery methods",
            "List notice addresses for each party",
        ),
    ),
    ClauseCategory(
        key="warranties",
        name="Warranties",
        pattern=re.compile(r"warrant|guarantee|represent|assure|promise", re.IGNORECASE),
        penalty=10,
        importance="Medium",
        description="Statements each party makes about facts, quality or authority.",
        risk_if_missing="No recourse if the other party's work or statements prove inaccurate.",
        suggested_language=(
            "Each party represents and warrants that it has full authority to enter into this "
            "Agreement."
        ),
        recommendation_category="Negotiation",
        implementation_steps=(
            "Add mutual representations and warranties",
            "Define remedies for breach of warranty",
        ),
    ),
)

CONTRACT_TYPES: Tuple[Tuple[str, re.Pattern], ...] = (
    ("Employment Agreement", re.compile(r"\b(employ(?:er|ee|ment)|salary|wage)", re.IGNORECASE)),
    ("Non-Disclosure Agreement", re.compile(r"\b(non-disclosure|confidential information|nda)\b", re.IGNORECASE)),
    ("Lease Agreement", re.compile(r"\b(lease|landlord|tenant|premises)", re.IGNORECASE)),
    ("Service Agreement", re.compile(r"\b(services|service provider|statement of work)", re.IGNORECASE)),
    ("Consulting Agreement", re.compile(r"\b(consultant|consulting)", re.IGNORECASE)),
    ("Sales Agreement", re.compile(r"\b(buyer|seller|purchase price|goods)", re.IGNORECASE)),
    ("License Agreement", re.compile(r"\b(licensor|licensee|license fee)", re.IGNORECASE)),
    ("Partnership Agreement", re.compile(r"\b(partnership|partners|joint venture)", re.IGNORECASE)),
)

JURISDICTION = re.compile(
    r"[Ll]aws?\s+of\s+(?:the\s+)?((?:State|Commonwealth|Province|Republic)\s+of\s+)?"
    r"([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+)*)"
)

SEVERITY_SCORES = {"High": 85, "Medium": 60}


def safety_rating(score: int) -> str:
    """Safe / Moderate / Risky / Dangerous."""
    if score < 40:
        return "Safe"
    if score < 60:
        return "Moderate"
    if score < 80:
        return "Risky"
    return "Dangerous"


def risk_label(score: int) -> str:
    """low / medium / high / critical; thresholds differ from safety_rating."""
    if score < 40:
        return "low"
    if score < 70:
        return "medium"
    if score < 90:
        return "high"
    return "critical"


def complexity_level(word_count: int) -> str:
    if word_count < 500:
        return "Simple"
    if word_count < 1500:
        return "Standard"
    return "Complex"


def estimated_review_time(word_count: int, missing_count: int) -> str:
    minutes = max(10, math.ceil(word_count / 200)) + 5 * missing_count
    if minutes < 60:
        return f"{minutes} minutes"
    hours = minutes / 60
    return f"{hours:.1f} hours"


def detect_contract_type(text: str) -> str:
    """Pick the contract type whose keywords occur most often."""
    best_type = "General Agreement"
    best_count = 0
    for contract_type, pattern in CONTRACT_TYPES:
        count = len(pattern.findall(text))
        if count > best_count:
            best_type, best_count = contract_type, count
    return best_type


def extract_jurisdiction(text: str) -> Optional[str]:
    """Return the jurisdiction named in a governing-law sentence, if any."""
    match = JURISDICTION.search(text)
    if not match:
        return None
    prefix, name = match.group(1) or "", match.group(2)
    return f"{prefix}{name}".strip()


def _snippet(text: str, start: int, end: int) -> str:
    """Sentence-ish window around a match."""
    left = max(0, start - SNIPPET_RADIUS)
    right = min(len(text), end + SNIPPET_RADIUS)
    sentence_start = text.rfind(".", left, start)
    sentence_end = text.find(".", end, right)
    left = sentence_start + 1 if sentence_start != -1 else left
    right = sentence_end + 1 if sentence_end != -1 else right
    return text[left:right].strip()


@dataclass
class CategoryFinding:
    category: ClauseCategory
    present: bool
    position: int = 0
    snippet: str = ""

    @property
    def score(self) -> int:
        return 10 if self.present else SEVERITY_SCORES[self.category.importance]

    @property
    def level(self) -> str:
        return "Low" if self.present else self.category.importance


class LocalAnalyzer:
    """Rule-based analyzer producing the full six-section analysis."""

    def __init__(self, categories: Tuple[ClauseCategory, ...] = CLAUSE_CATEGORIES) -> None:
        self.categories = categories

    def find_categories(self, text: str) -> List[CategoryFinding]:
        findings = []
        for category in self.categories:
            match = category.pattern.search(text)
            if match:
                findings.append(
                    CategoryFinding(
                        category=category,
                        present=True,
                        position=match.start(),
                        snippet=_snippet(text, match.start(), match.end()),
                    )
                )
            else:
                findings.append(CategoryFinding(category=category, present=False))
        return findings

    @staticmethod
    def score(findings: List[CategoryFinding]) -> int:
        penalties = sum(f.category.penalty for f in findings if not f.present)
        return max(0, min(100, BASE_SCORE + penalties))

    def analyze(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Analyze contract text without any external calls.

        The result is fully determined by the text and metadata; identifiers
        and timestamps are left for the caller to stamp.

        Args:
            text: Extracted contract text
            metadata: Optional values merged over the metadata section

        Returns:
            Six-section analysis dict
        """
        findings = self.find_categories(text)
        present = [f for f in findings if f.present]
        missing = [f for f in findings if not f.present]

        word_count = count_words(text)
        risk_score = self.score(findings)
        rating = safety_rating(risk_score)
        contract_type = detect_contract_type(text)
        jurisdiction = extract_jurisdiction(text)

        result = AnalysisResult(
            metadata=AnalysisMetadata(contract_type=contract_type, word_count=word_count),
            executive_summary=self._executive_summary(
                findings, risk_score, rating, word_count, contract_type, jurisdiction
            ),
            risk_assessment=self._risk_assessment(findings, risk_score),
            clause_analysis=self._clause_analysis(findings),
            legal_insights=self._legal_insights(missing, jurisdiction),
            export_data=self._export_data(findings, present),
        ).to_dict()

        if metadata:
            result["metadata"].update(metadata)

        logger.debug(
            "Local analysis complete",
            extra={"risk_score": risk_score, "missing_categories": [f.category.key for f in missing]},
        )
        return result

    def _executive_summary(
        self,
        findings: List[CategoryFinding],
        risk_score: int,
        rating: str,
        word_count: int,
        contract_type: str,
        jurisdiction: Optional[str],
    ) -> ExecutiveSummary:
        present = [f for f in findings if f.present]
        missing = [f for f in findings if not f.present]
        missing_high = [f for f in missing if f.category.importance == "High"]
        complexity = complexity_level(word_count)

        key_findings = [
            f"{f.category.name} identified" if f.present else f"{f.category.name} not found"
            for f in findings
        ]
        summary = (
            f"Automated pattern analysis of this {contract_type.lower()} found "
            f"{len(present)} of {len(findings)} standard clause categories. "
            f"Overall risk score {risk_score}/100 ({rating}). "
            "Professional legal review is recommended."
        )

        return ExecutiveSummary(
            contract_overview=ContractOverview(
                type=contract_type,
                jurisdiction=jurisdiction or "Not specified",
                governing_law=f"Laws of {jurisdiction}" if jurisdiction else "Not specified",
                purpose_summary=f"{contract_type} analysed by keyword pattern matching.",
                complexity_level=complexity,
                contract_length=f"{word_count} words",
            ),
            key_metrics=KeyMetrics(
                risk_score=risk_score,
                safety_rating=rating,
                complexity_level=complexity,
                estimated_review_time=estimated_review_time(word_count, len(missing)),
            ),
            quick_insights=QuickInsights(
                biggest_risk=missing_high[0].category.risk_if_missing if missing_high else (
                    missing[0].category.risk_if_missing if missing else "No standard clause gaps detected"
                ),
                strongest_protection=f"{present[0].category.name} present" if present else "None identified",
                most_important_clause=present[0].category.name if present else "None identified",
                negotiation_priority=f"Add {missing[0].category.name}" if missing else "Review existing terms with counsel",
            ),
            summary=summary,
            key_findings=key_findings,
            immediate_actions=[f"Add {f.category.name}" for f in missing_high],
        )

    def _risk_assessment(self, findings: List[CategoryFinding], risk_score: int) -> RiskAssessment:
        distribution = RiskDistribution(
            high=sum(1 for f in findings if not f.present and f.category.importance == "High"),
            medium=sum(1 for f in findings if not f.present and f.category.importance == "Medium"),
            safe=sum(1 for f in findings if f.present),
        )
        breakdown = [
            RiskCategory(
                category=f.category.name,
                score=f.score,
                risk_level=f.level,
                clause_count=1 if f.present else 0,
                key_issues=[] if f.present else [f"{f.category.name} missing"],
                recommendations=(
                    [f"Review {f.category.name.lower()} with counsel"]
                    if f.present
                    else list(f.category.implementation_steps)
                ),
            )
            for f in findings
        ]
        missing_names = [f.category.name for f in findings if not f.present]
        mitigation = (
            f"Add the missing provisions: {', '.join(missing_names)}."
            if missing_names
            else "All standard clause categories are present; verify their terms with counsel."
        )
        return RiskAssessment(
            overall_score=risk_score,
            risk_level=risk_label(risk_score),
            mitigation_summary=mitigation,
            risk_distribution=distribution,
            category_breakdown=breakdown,
        )

    def _clause_analysis(self, findings: List[CategoryFinding]) -> ClauseAnalysis:
        sections = []
        for f in findings:
            clauses = []
            if f.present:
                clauses.append(
                    AnalyzedClause(
                        clause_id=f"{f.category.key}-1",
                        original_text=f.snippet,
                        ai_summary=f"{f.category.name} language detected.",
                        risk_level="Low",
                        risk_score=f.score,
                        recommendations=[f"Verify the {f.category.name.lower()} are complete and specific"],
                        legal_implications=[f.category.description],
                        negotiation_priority="Low",
                    )
                )
            sections.append(
                ClauseSection(
                    section_name=f.category.name,
                    section_type=f.category.key,
                    clauses=clauses,
                    section_risk_score=f.score,
                    summary=(
                        f"{f.category.name} present." if f.present else f"No {f.category.name.lower()} found."
                    ),
                )
            )

        critical = [
            CriticalClause(
                clause_id=f"missing-{f.category.key}",
                clause_type=f.category.name,
                issues=[f"{f.category.name} missing", f.category.risk_if_missing],
                immediate_actions=list(f.category.implementation_steps[:1]),
                escalation_required=True,
            )
            for f in findings
            if not f.present and f.category.importance == "High"
        ]
        missing = [
            MissingClause(
                clause_type=f.category.name,
                description=f.category.description,
                importance=f.category.importance,
                risk_if_missing=f.category.risk_if_missing,
                suggested_language=f.category.suggested_language,
            )
            for f in findings
            if not f.present
        ]
        present_count = sum(1 for f in findings if f.present)
        return ClauseAnalysis(
            total_clauses=present_count,
            analyzed_clauses=present_count,
            clauses_by_section=sections,
            critical_clauses=critical,
            missing_clauses=missing,
        )

    def _legal_insights(self, missing: List[CategoryFinding], jurisdiction: Optional[str]) -> LegalInsights:
        recommendations = [
            Recommendation(
                id=f"rec-{f.category.key}",
                category=f.category.recommendation_category,
                priority=f.category.importance,
                title=f"Add {f.category.name}",
                description=f"{f.category.description} Without it: {f.category.risk_if_missing}",
                implementation_steps=list(f.category.implementation_steps),
                estimated_impact=f"Reduces risk score by {f.category.penalty} points",
                time_sensitivity="Immediate" if f.category.importance == "High" else "Short-term",
            )
            for f in missing
        ]
        recommendations.append(
            Recommendation(
                id="rec-legal-review",
                category="Compliance",
                priority="High",
                title="Professional Legal Review",
                description=(
                    "Automated pattern analysis only detects whether standard provisions exist. "
                    "Have a qualified attorney review this contract before signing."
                ),
                implementation_steps=["Share the contract with legal counsel", "Discuss flagged gaps"],
                estimated_impact="Catches issues pattern matching cannot detect",
                time_sensitivity="Short-term",
            )
        )

        action_items = [
            ActionItem(id=f"action-{i}", title=rec.title, description=rec.description, priority=rec.priority)
            for i, rec in enumerate(recommendations, start=1)
        ]

        jurisdiction_advice = []
        if jurisdiction:
            jurisdiction_advice.append(
                JurisdictionAdvice(
                    jurisdiction=jurisdiction,
                    specific_considerations=[f"Confirm {jurisdiction} law is appropriate for both parties"],
                    compliance_notes=["Check local requirements for enforceability"],
                )
            )

        return LegalInsights(
            contextual_recommendations=recommendations,
            jurisdiction_specific=jurisdiction_advice,
            role_based_advice=[
                RoleSpecificAdvice(
                    role="Individual",
                    specific_guidance=["Read every obligation you take on before signing"],
                    common_pitfalls=["Signing without agreed payment and exit terms"],
                    negotiation_tips=[f"Ask for {f.category.name.lower()}" for f in missing[:3]],
                )
            ],
            action_items=action_items,
        )

    def _export_data(self, findings: List[CategoryFinding], present: List[CategoryFinding]) -> ExportData:
        annotations = [
            ContractAnnotation(
                id=f"ann-{f.category.key}",
                clause_id=f"{f.category.key}-1",
                content=f"{f.category.name} identified",
                position=f.position,
            )
            for f in present
        ]
        distribution = {"High": 0, "Medium": 0, "Low": 0}
        for f in findings:
            distribution[f.level] += 1

        charts = [
            ChartData(
                chart_type="risk_distribution",
                data=[{"label": label, "value": value} for label, value in distribution.items()],
                configuration={"type": "pie"},
            ),
            ChartData(
                chart_type="category_scores",
                data=[{"category": f.category.name, "score": f.score} for f in findings],
                configuration={"type": "bar", "max": 100},
            ),
        ]
        return ExportData(annotations=annotations, charts_data=charts)


def create_local_analyzer() -> LocalAnalyzer:
    return LocalAnalyzer()
