"""
Async OpenAI client construction.

Clients are built on first use by their owner (see OpenAIChatClient) so the
app can start without OPENAI_API_KEY set.
"""

import os
from typing import Optional
import httpx
from openai import AsyncOpenAI

# Timeout configuration: generation batches are long, connect should be fast
DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


def create_openai_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> AsyncOpenAI:
    """
    Build an AsyncOpenAI client with timeout configuration.

    Args:
        api_key: Explicit key; falls back to OPENAI_API_KEY
        base_url: Optional OpenAI-compatible endpoint (e.g. a Gemini gateway);
            falls back to OPENAI_BASE_URL

    Returns:
        AsyncOpenAI: A new client instance

    Raises:
        ValueError: If no API key is available
    """
    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        raise ValueError(
            "OPENAI_API_KEY environment variable is not set. "
            "Please set it before using question generation."
        )
    return AsyncOpenAI(
        api_key=key,
        base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
        timeout=DEFAULT_TIMEOUT,
        max_retries=0,  # Retry bookkeeping belongs to the schedulers
    )
