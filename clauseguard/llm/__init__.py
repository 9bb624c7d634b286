"""
Language model access for contract analysis.

Provider backends, the fallback-aware model client and analysis prompts.
"""

from clauseguard.llm.backends import AnthropicBackend, ModelBackend, OpenAIBackend, create_backend
from clauseguard.llm.client import ModelClient, classify_model_error, create_model_client
from clauseguard.llm.prompts import build_analysis_messages, build_chat_messages, build_chat_system_prompt

__all__ = [
    "AnthropicBackend",
    "ModelBackend",
    "OpenAIBackend",
    "create_backend",
    "ModelClient",
    "classify_model_error",
    "create_model_client",
    "build_analysis_messages",
    "build_chat_messages",
    "build_chat_system_prompt",
]
