"""
Model Inference Module.

LLM-based invoice field extraction: prompt, client interface, Groq client
and tolerant response parsing.

Author: ML Engineering Team
"""

from .extracted_fields import ExtractedFields, DEFAULT_CURRENCY
from .llm_client import LlmExtractionClient
from .groq_client import GroqLlmClient
from .response_parser import (
    DEFAULT_LLM_CONFIDENCE,
    parse_chat_completion,
    parse_response_content,
    sanitize_amount,
    strip_code_fences,
)

__all__ = [
    'ExtractedFields',
    'DEFAULT_CURRENCY',
    'LlmExtractionClient',
    'GroqLlmClient',
    'DEFAULT_LLM_CONFIDENCE',
    'parse_chat_completion',
    'parse_response_content',
    'sanitize_amount',
    'strip_code_fences',
]
