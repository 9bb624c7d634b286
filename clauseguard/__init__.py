"""
ClauseGuard: resilient contract risk analysis.

Extracts text from uploaded PDF and DOCX contracts, asks a language model for
a structured six-section risk analysis, and falls back to deterministic local
analysis whenever the model is slow, failing or returns unusable output.
"""

__version__ = "0.1.0"
