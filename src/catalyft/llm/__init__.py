"""LLM integration for ARIA."""

from .providers import (
    LLMClient,
    LLMMetrics,
    ModelType,
    RetryConfig,
    get_llm_client,
    reset_llm_client,
)

__all__ = [
    "LLMClient",
    "LLMMetrics",
    "ModelType",
    "RetryConfig",
    "get_llm_client",
    "reset_llm_client",
]
