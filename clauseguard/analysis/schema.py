"""
Typed shape of the six-section contract analysis.

The local analyzer builds its results through these models. Model output is
never coerced into them; it is only checked structurally by the validator.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Model whose stored keys are camelCase while attributes stay snake_case."""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Metadata
# =============================================================================


class AnalysisMetadata(CamelModel):
    analysis_id: str = Field(default="", alias="analysisId")
    contract_id: str = Field(default="", alias="contractId")
    user_id: str = Field(default="", alias="userId")
    analysis_date: str = Field(default="", alias="analysisDate")
    contract_type: str = Field(default="General Agreement", alias="contractType")
    page_count: int = Field(default=0, alias="pageCount")
    word_count: int = Field(default=0, alias="wordCount")
    processing_time: float = Field(default=0.0, alias="processingTime")


# =============================================================================
# Executive summary
# =============================================================================


class Party(BaseModel):
    name: str
    type: str = "Company"
    role: str = "Other"
    legal_status: str = "Unknown"


class ContractOverview(BaseModel):
    type: str
    parties: List[Party] = Field(default_factory=list)
    effective_date: str = ""
    contract_term: str = ""
    jurisdiction: str = ""
    governing_law: str = ""
    purpose_summary: str = ""
    complexity_level: str = ""
    contract_length: str = ""


class KeyMetrics(BaseModel):
    risk_score: int = Field(..., ge=0, le=100)
    safety_rating: str
    complexity_level: str
    estimated_review_time: str


class QuickInsights(BaseModel):
    biggest_risk: str
    strongest_protection: str
    most_important_clause: str
    negotiation_priority: str


class ExecutiveSummary(BaseModel):
    contract_overview: ContractOverview
    key_metrics: KeyMetrics
    quick_insights: QuickInsights
    summary: str = ""
    key_findings: List[str] = Field(default_factory=list)
    immediate_actions: List[str] = Field(default_factory=list)


# =============================================================================
# Risk assessment
# =============================================================================


class RiskDistribution(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    safe: int = 0


class RiskCategory(BaseModel):
    category: str
    score: int = Field(..., ge=0, le=100)
    risk_level: str
    clause_count: int = 0
    key_issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class TrendAnalysis(BaseModel):
    vs_industry_average: int = 0
    vs_similar_contracts: int = 0
    risk_trajectory: str = "Stable"


class RiskAssessment(BaseModel):
    overall_score: int = Field(..., ge=0, le=100)
    risk_level: str
    mitigation_summary: str = ""
    risk_distribution: RiskDistribution
    category_breakdown: List[RiskCategory] = Field(default_factory=list)
    trend_analysis: TrendAnalysis = Field(default_factory=TrendAnalysis)


# =============================================================================
# Clause analysis
# =============================================================================


class AnalyzedClause(BaseModel):
    clause_id: str
    original_text: str
    ai_summary: str
    risk_level: str
    risk_score: int = Field(..., ge=0, le=100)
    risk_factors: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    legal_implications: List[str] = Field(default_factory=list)
    negotiation_priority: str = "Medium"


class ClauseSection(BaseModel):
    section_name: str
    section_type: str
    clauses: List[AnalyzedClause] = Field(default_factory=list)
    section_risk_score: int = Field(..., ge=0, le=100)
    summary: str = ""


class CriticalClause(BaseModel):
    clause_id: str
    clause_type: str
    risk_level: str = "Critical"
    issues: List[str] = Field(default_factory=list)
    immediate_actions: List[str] = Field(default_factory=list)
    escalation_required: bool = False
    legal_review_recommended: bool = True


class MissingClause(CamelModel):
    clause_type: str = Field(..., alias="clauseType")
    description: str
    importance: str
    risk_if_missing: str = Field(..., alias="riskIfMissing")
    suggested_language: str = Field(..., alias="suggestedLanguage")


class ClauseAnalysis(BaseModel):
    total_clauses: int = 0
    analyzed_clauses: int = 0
    clauses_by_section: List[ClauseSection] = Field(default_factory=list)
    critical_clauses: List[CriticalClause] = Field(default_factory=list)
    missing_clauses: List[MissingClause] = Field(default_factory=list)


# =============================================================================
# Legal insights
# =============================================================================


class Recommendation(BaseModel):
    id: str
    category: str
    priority: str
    title: str
    description: str
    implementation_steps: List[str] = Field(default_factory=list)
    estimated_impact: str = ""
    time_sensitivity: str = "Short-term"
    user_role_context: str = "Individual"


class JurisdictionAdvice(BaseModel):
    jurisdiction: str
    specific_considerations: List[str] = Field(default_factory=list)
    legal_requirements: List[str] = Field(default_factory=list)
    compliance_notes: List[str] = Field(default_factory=list)


class RoleSpecificAdvice(BaseModel):
    role: str
    specific_guidance: List[str] = Field(default_factory=list)
    common_pitfalls: List[str] = Field(default_factory=list)
    negotiation_tips: List[str] = Field(default_factory=list)


class ActionItem(BaseModel):
    id: str
    title: str
    description: str
    priority: str
    status: str = "Pending"


class LegalInsights(BaseModel):
    contextual_recommendations: List[Recommendation] = Field(default_factory=list)
    jurisdiction_specific: List[JurisdictionAdvice] = Field(default_factory=list)
    role_based_advice: List[RoleSpecificAdvice] = Field(default_factory=list)
    action_items: List[ActionItem] = Field(default_factory=list)


# =============================================================================
# Export data
# =============================================================================


class ContractAnnotation(BaseModel):
    id: str
    clause_id: str
    annotation_type: str = "highlight"
    content: str
    position: int = 0
    risk_level: str = "Low"


class ChartData(BaseModel):
    chart_type: str
    data: List[Dict[str, Any]] = Field(default_factory=list)
    configuration: Dict[str, Any] = Field(default_factory=dict)


class ExportData(BaseModel):
    pdf_template: str = "standard"
    word_template: str = "standard"
    annotations: List[ContractAnnotation] = Field(default_factory=list)
    charts_data: List[ChartData] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """The complete six-section analysis."""

    metadata: AnalysisMetadata
    executive_summary: ExecutiveSummary
    risk_assessment: RiskAssessment
    clause_analysis: ClauseAnalysis
    legal_insights: LegalInsights
    export_data: ExportData

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-compatible dict with the stored key names."""
        return self.model_dump(mode="json", by_alias=True)
