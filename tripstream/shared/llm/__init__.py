"""LLM client utilities."""

from tripstream.shared.llm.client import (
    call_llm_json,
    get_cached_client,
    iter_content_deltas,
    open_json_stream,
)

__all__ = ["get_cached_client", "call_llm_json", "open_json_stream", "iter_content_deltas"]
