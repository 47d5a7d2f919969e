"""
Mock infrastructure for question bank testing.
Provides deterministic fakes for the LLM provider.
"""

from .llm_mocks import (
    FakeLLMClient,
    create_invalid_question,
    create_mock_question,
    make_not_found_error,
    mock_openai_completion,
    mock_questions_json,
)

__all__ = [
    "FakeLLMClient",
    "create_invalid_question",
    "create_mock_question",
    "make_not_found_error",
    "mock_openai_completion",
    "mock_questions_json",
]
