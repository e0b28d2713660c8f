"""
OpenAI client with retry logic.

Provides a cached client instance, a wrapper for strict-JSON
completions, and a streaming variant that yields raw content deltas.
Request creation is retried with tenacity; once a stream is open its
chunks are passed through untouched.
"""

import os
from typing import Any, Dict, Iterator, List, Optional

from dotenv import load_dotenv
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

load_dotenv(".env.local")
load_dotenv()

# Module-level cache for OpenAI client
_client: Optional[OpenAI] = None


def get_cached_client() -> OpenAI:
    """
    Returns a cached instance of the OpenAI client.

    Uses OPENAI_API_KEY environment variable for authentication.
    The client is created once and reused for all subsequent calls.
    """
    global _client
    if _client is None:
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it to your OpenAI API key."
            )
        _client = OpenAI(api_key=api_key)
    return _client


def _json_schema_format(schema: Dict[str, Any], name: str) -> Dict[str, Any]:
    return {"type": "json_schema", "json_schema": {"name": name, "schema": schema}}


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((Exception,)),
    reraise=True,
)
def call_llm_json(
    messages: List[Dict[str, str]],
    schema: Dict[str, Any],
    model: str = "gpt-4o-mini",
    temperature: float = 0.4,
    max_tokens: int = 1400,
    schema_name: str = "StrictPlanSchema",
    client: Optional[OpenAI] = None,
) -> str:
    """
    Call the Chat Completion API constrained to a JSON schema.

    Args:
        messages: List of message dicts with 'role' and 'content' keys
        schema: JSON schema the response must follow
        model: Model identifier to use
        temperature: Sampling temperature
        max_tokens: Completion token cap
        schema_name: Name reported for the schema
        client: Optional OpenAI client instance. If not provided, uses cached client.

    Returns:
        The assistant's response content ("{}" if empty).

    Raises:
        Exception: If all retry attempts fail.
    """
    if client is None:
        client = get_cached_client()

    response = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        response_format=_json_schema_format(schema, schema_name),
    )

    return (response.choices[0].message.content or "{}").strip()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((Exception,)),
    reraise=True,
)
def open_json_stream(
    messages: List[Dict[str, str]],
    schema: Dict[str, Any],
    model: str = "gpt-4o-mini",
    temperature: float = 0.4,
    max_tokens: int = 1600,
    schema_name: str = "StrictPlanSchema",
    client: Optional[OpenAI] = None,
) -> Any:
    """
    Open a streaming strict-JSON completion.

    Only opening the stream is retried; a failure mid-stream surfaces
    to the caller.

    Returns:
        The SDK stream object (iterate it with iter_content_deltas).
    """
    if client is None:
        client = get_cached_client()

    return client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        stream=True,
        response_format=_json_schema_format(schema, schema_name),
    )


def iter_content_deltas(stream: Any) -> Iterator[str]:
    """Yield the non-empty content delta of each streamed chunk."""
    for chunk in stream:
        choices = getattr(chunk, "choices", None) or []
        if not choices:
            continue
        delta = getattr(choices[0].delta, "content", None)
        if delta:
            yield delta
