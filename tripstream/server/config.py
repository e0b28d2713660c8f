"""
Server configuration.

Values are read from the process environment; python-dotenv loads
.env.local and .env first so local development needs no exports.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from tripstream.plan.config import PlanConfig, get_config


load_dotenv(".env.local")
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class ServerConfig:
    """
    Configuration for the chat and places endpoints.

    Attributes:
        json_model: OpenAI model used for strict-JSON plans
        places_api_key: Places Web Service key; enrichment is off without it
        delta_log_every: Log one of every N streamed deltas
        ping_interval_s: Seconds without any frame before a ping frame is sent
        plan_mode: "strict" (3-5 items per day) or "legacy" (3-7)
        default_radius_meters: Search radius when the request omits one
        temperature: Sampling temperature for plan generation
        max_tokens: Completion cap for the non-streaming endpoint
        stream_max_tokens: Completion cap for the streaming endpoint
        image_workers: Concurrent photo lookups after jsonFinal
        cors_origins: Allowed CORS origins
    """

    json_model: str = "gpt-4o-mini"
    places_api_key: Optional[str] = None
    delta_log_every: int = 12
    ping_interval_s: float = 15.0
    plan_mode: str = "strict"
    default_radius_meters: int = 2000
    temperature: float = 0.4
    max_tokens: int = 1400
    stream_max_tokens: int = 1600
    image_workers: int = 4
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def plan_config(self) -> PlanConfig:
        return get_config(self.plan_mode)

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.places_api_key)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        origins = os.environ.get("CORS_ORIGINS", "*")
        return cls(
            json_model=os.environ.get("OPENAI_JSON_MODEL", "gpt-4o-mini"),
            places_api_key=os.environ.get("PLACES_API_KEY") or None,
            delta_log_every=max(1, _env_int("DELTA_LOG_EVERY", 12)),
            ping_interval_s=_env_float("PING_INTERVAL_S", 15.0),
            plan_mode=os.environ.get("PLAN_MODE", "strict"),
            default_radius_meters=_env_int("DEFAULT_RADIUS_METERS", 2000),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.4),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 1400),
            stream_max_tokens=_env_int("OPENAI_STREAM_MAX_TOKENS", 1600),
            image_workers=max(1, _env_int("IMAGE_WORKERS", 4)),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


_config: Optional[ServerConfig] = None


def get_server_config() -> ServerConfig:
    """Return the process-wide config, reading the environment once."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config
