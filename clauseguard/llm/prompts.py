"""
Prompts for contract risk analysis and contract Q&A.

The system prompt fixes the model's role and output discipline; the user
prompt carries the six-section schema and the (truncated) contract text.
Chat prompts put the contract in the system prompt and replay recent
exchanges as conversation turns.
"""

from typing import Dict, Iterable, List, Tuple

SYSTEM_PROMPT = """You are a legal analysis engine that reads uploaded contracts and outputs structured risk assessments in strict JSON format.

You are a contract analysis expert. Your assessments should:
- Identify the contract type, the parties and the governing law
- Score overall risk from 0 (safe) to 100 (dangerous)
- Flag critical clauses that need immediate attention
- List standard protections that are missing
- Give concrete, actionable recommendations for the person signing

Always return valid JSON only. Never use markdown code blocks or add any text before or after the JSON object."""


JSON_ONLY_INSTRUCTION = (
    "IMPORTANT: You must respond ONLY with valid JSON. Do not include any prose, "
    "explanations or markdown code fences. Your response must start with { and end with }. "
    "If you cannot comply, return {}."
)


ANALYSIS_SCHEMA = """{
  "metadata": {
    "contractType": string
  },
  "executive_summary": {
    "contract_overview": {
      "type": string,
      "parties": [{"name": string, "type": string, "role": string, "legal_status": string}],
      "effective_date": string,
      "contract_term": string,
      "jurisdiction": string,
      "governing_law": string,
      "purpose_summary": string
    },
    "key_metrics": {
      "risk_score": number, // 0-100
      "safety_rating": string, // one of 'Safe', 'Moderate', 'Risky', 'Dangerous'
      "complexity_level": string, // one of 'Simple', 'Standard', 'Complex'
      "estimated_review_time": string
    },
    "quick_insights": {
      "biggest_risk": string,
      "strongest_protection": string,
      "most_important_clause": string,
      "negotiation_priority": string
    }
  },
  "risk_assessment": {
    "overall_score": number,
    "risk_level": string, // one of 'low', 'medium', 'high', 'critical'
    "risk_distribution": {"critical": number, "high": number, "medium": number, "low": number, "safe": number},
    "category_breakdown": [
      {"category": string, "score": number, "risk_level": string, "clause_count": number, "key_issues": [string], "recommendations": [string]}
    ]
  },
  "clause_analysis": {
    "total_clauses": number,
    "analyzed_clauses": number,
    "clauses_by_section": [
      {"section_name": string, "section_type": string, "section_risk_score": number, "summary": string, "clauses": [
        {"clause_id": string, "original_text": string, "ai_summary": string, "risk_level": string, "risk_score": number, "risk_factors": [string], "recommendations": [string], "legal_implications": [string], "negotiation_priority": string}
      ]}
    ],
    "critical_clauses": [
      {"clause_id": string, "clause_type": string, "risk_level": "Critical", "issues": [string], "immediate_actions": [string], "escalation_required": boolean, "legal_review_recommended": boolean}
    ],
    "missing_clauses": [
      {"clauseType": string, "description": string, "importance": string, "riskIfMissing": string, "suggestedLanguage": string}
    ]
  },
  "legal_insights": {
    "contextual_recommendations": [
      {"id": string, "category": string, "priority": string, "title": string, "description": string, "implementation_steps": [string], "estimated_impact": string, "time_sensitivity": string, "user_role_context": string}
    ],
    "jurisdiction_specific": [{"jurisdiction": string, "specific_considerations": [string], "legal_requirements": [string], "compliance_notes": [string]}],
    "role_based_advice": [{"role": string, "specific_guidance": [string], "common_pitfalls": [string], "negotiation_tips": [string]}],
    "action_items": [{"id": string, "title": string, "description": string, "priority": string, "status": string}]
  },
  "export_data": {
    "pdf_template": string,
    "word_template": string,
    "annotations": [{"id": string, "clause_id": string, "annotation_type": string, "content": string, "position": number, "risk_level": string}],
    "charts_data": [{"chart_type": string, "data": [object], "configuration": object}]
  }
}"""


ANALYSIS_PROMPT_TEMPLATE = """Analyze the contract below and respond ONLY with valid JSON that matches this schema:

{schema}

Analysis requirements:
1. Score each risk category and explain the key issues behind the score
2. Quote the original contract text for every analyzed clause
3. Identify the standard clauses that are missing and suggest language for them
4. Provide 3-7 actionable recommendations and matching action items
5. Keep risk_score and overall_score consistent with each other

Important rules:
1. Output ONLY valid JSON (no extra text, no code fences, no explanations).
2. Do NOT include trailing commas.
3. Do NOT include null values; use empty arrays [] or empty strings "" instead.
4. All text values must be in double quotes.

CONTRACT TEXT:
{contract_text}"""


def truncate_contract(text: str, max_chars: int) -> str:
    """Cut contract text to the model input limit."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def build_analysis_messages(text: str, max_chars: int = 100_000) -> List[Dict[str, str]]:
    """Build the single user turn asking for a six-section analysis."""
    prompt = ANALYSIS_PROMPT_TEMPLATE.format(
        schema=ANALYSIS_SCHEMA,
        contract_text=truncate_contract(text, max_chars),
    )
    return [{"role": "user", "content": prompt}]


CHAT_HISTORY_TURNS = 10

CHAT_SYSTEM_PROMPT_TEMPLATE = """You are a contract analysis assistant answering questions about one specific contract.

Contract title: {title}

Full contract text:
{contract_text}

---

Answer from the contract text above. Quote the relevant clause when you rely on it, say plainly when the contract does not address a question, and point out terms the user should have reviewed by a lawyer. Answer in plain prose, not JSON."""


def build_chat_system_prompt(title: str, text: str, max_chars: int = 100_000) -> str:
    """System prompt carrying the contract a chat is about."""
    return CHAT_SYSTEM_PROMPT_TEMPLATE.format(title=title, contract_text=truncate_contract(text, max_chars))


def build_chat_messages(
    history: Iterable[Tuple[str, str]],
    question: str,
    max_turns: int = CHAT_HISTORY_TURNS,
) -> List[Dict[str, str]]:
    """
    Conversation turns for a contract question.

    Args:
        history: Earlier (question, answer) pairs, oldest first
        question: The new question
        max_turns: Earlier exchanges to replay, most recent kept

    Returns:
        Alternating user/assistant turns ending with the new question
    """
    exchanges = list(history)[-max_turns:] if max_turns > 0 else []
    messages: List[Dict[str, str]] = []
    for asked, answered in exchanges:
        messages.append({"role": "user", "content": asked})
        messages.append({"role": "assistant", "content": answered})
    messages.append({"role": "user", "content": question})
    return messages
