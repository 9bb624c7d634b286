"""
Tests for the deterministic local analyzer.
"""

import pytest

from clauseguard.analysis.local_analyzer import (
    LocalAnalyzer,
    complexity_level,
    detect_contract_type,
    extract_jurisdiction,
    risk_label,
    safety_rating,
)
from clauseguard.analysis.validator import REQUIRED_SECTIONS, validate


class TestScoring:
    def test_all_categories_present(self, local_analyzer, full_contract):
        result = local_analyzer.analyze(full_contract)
        metrics = result["executive_summary"]["key_metrics"]

        assert metrics["risk_score"] == 20
        assert metrics["safety_rating"] == "Safe"
        assert result["risk_assessment"]["risk_level"] == "low"
        assert result["clause_analysis"]["missing_clauses"] == []

    def test_no_categories_present(self, local_analyzer, bare_text):
        result = local_analyzer.analyze(bare_text)
        metrics = result["executive_summary"]["key_metrics"]

        assert metrics["risk_score"] == 100
        assert metrics["safety_rating"] == "Dangerous"
        assert result["risk_assessment"]["risk_level"] == "critical"
        assert len(result["clause_analysis"]["missing_clauses"]) == 6

    def test_missing_payment_only(self, local_analyzer):
        text = (
            "Either party may terminate. Neither party is liable for damages. "
            "Governing law is the law of Ontario. Send notice in writing. Each party warrants authority."
        )
        result = local_analyzer.analyze(text)

        assert result["executive_summary"]["key_metrics"]["risk_score"] == 50
        assert result["executive_summary"]["key_metrics"]["safety_rating"] == "Moderate"
        missing = result["clause_analysis"]["missing_clauses"]
        assert [m["clauseType"] for m in missing] == ["Payment Terms"]
        assert missing[0]["importance"] == "High"

    def test_keywords_match_inside_words(self, local_analyzer):
        text = "The prepayment is due when the parties attend the meeting. Both agree."
        findings = {f.category.key: f.present for f in local_analyzer.find_categories(text)}

        assert findings["payment_terms"]
        assert findings["termination"]
        assert not any(findings[key] for key in ("liability", "governing_law", "notice", "warranties"))
        assert local_analyzer.analyze(text)["executive_summary"]["key_metrics"]["risk_score"] == 80

    def test_case_insensitive(self, local_analyzer):
        findings = local_analyzer.find_categories("PAYMENT is due")
        assert findings[0].present


class TestLabels:
    @pytest.mark.parametrize(
        "score,rating",
        [(0, "Safe"), (39, "Safe"), (40, "Moderate"), (59, "Moderate"), (60, "Risky"), (79, "Risky"), (80, "Dangerous")],
    )
    def test_safety_rating(self, score, rating):
        assert safety_rating(score) == rating

    @pytest.mark.parametrize(
        "score,label",
        [(39, "low"), (40, "medium"), (69, "medium"), (70, "high"), (89, "high"), (90, "critical")],
    )
    def test_risk_label(self, score, label):
        assert risk_label(score) == label

    def test_rating_and_label_differ_at_same_score(self):
        assert safety_rating(65) == "Risky"
        assert risk_label(65) == "medium"

    @pytest.mark.parametrize("words,level", [(499, "Simple"), (500, "Standard"), (1499, "Standard"), (1500, "Complex")])
    def test_complexity(self, words, level):
        assert complexity_level(words) == level


class TestShape:
    def test_six_sections_and_valid(self, local_analyzer, bare_text):
        result = local_analyzer.analyze(bare_text)

        assert set(REQUIRED_SECTIONS) <= set(result)
        assert validate(result)

    def test_deterministic(self, full_contract):
        assert LocalAnalyzer().analyze(full_contract) == LocalAnalyzer().analyze(full_contract)

    def test_metadata_defaults_and_overrides(self, local_analyzer, full_contract):
        result = local_analyzer.analyze(full_contract, metadata={"contractId": "c-1", "pageCount": 2})
        metadata = result["metadata"]

        assert metadata["contractId"] == "c-1"
        assert metadata["pageCount"] == 2
        assert metadata["analysisDate"] == ""
        assert metadata["contractType"] == "Service Agreement"
        assert metadata["wordCount"] > 0

    def test_recommendations_per_missing_category(self, local_analyzer, bare_text):
        result = local_analyzer.analyze(bare_text)
        titles = [r["title"] for r in result["legal_insights"]["contextual_recommendations"]]

        assert "Add Payment Terms" in titles
        assert "Add Warranties" in titles
        assert titles[-1] == "Professional Legal Review"
        assert len(result["legal_insights"]["action_items"]) == len(titles)

    def test_critical_clauses_for_high_importance_gaps(self, local_analyzer, bare_text):
        critical = local_analyzer.analyze(bare_text)["clause_analysis"]["critical_clauses"]

        assert [c["clause_type"] for c in critical] == [
            "Payment Terms",
            "Termination Clause",
            "Liability Provisions",
        ]

    def test_snippets_and_annotations(self, local_analyzer, full_contract):
        result = local_analyzer.analyze(full_contract)
        sections = result["clause_analysis"]["clauses_by_section"]
        payment = next(s for s in sections if s["section_type"] == "payment_terms")

        assert "Payment" in payment["clauses"][0]["original_text"]
        assert len(result["export_data"]["annotations"]) == 6
        chart_types = [c["chart_type"] for c in result["export_data"]["charts_data"]]
        assert chart_types == ["risk_distribution", "category_scores"]

    def test_jurisdiction(self, local_analyzer, full_contract):
        overview = local_analyzer.analyze(full_contract)["executive_summary"]["contract_overview"]

        assert overview["jurisdiction"] == "State of New York"
        assert overview["governing_law"] == "Laws of State of New York"


class TestDetection:
    def test_contract_type(self):
        assert detect_contract_type("The Employee shall receive a salary. The employer may review.") == (
            "Employment Agreement"
        )
        assert detect_contract_type("The Landlord leases the premises to the Tenant.") == "Lease Agreement"
        assert detect_contract_type("Nothing specific here.") == "General Agreement"

    def test_jurisdiction_variants(self):
        assert extract_jurisdiction("governed by the laws of England") == "England"
        assert extract_jurisdiction("under the Laws of the Commonwealth of Massachusetts") == (
            "Commonwealth of Massachusetts"
        )
        assert extract_jurisdiction("no law named") is None
