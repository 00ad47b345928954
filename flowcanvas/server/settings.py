"""
Runtime settings, read from the environment.

main.py loads a `.env` file from the working directory first, so
OPENAI_API_KEY and the FLOWCANVAS_* variables can live there instead of
being exported by hand.
"""
from __future__ import annotations

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    completion_backend: Literal["openai", "langchain", "echo"] = "openai"
    model: str = "gpt-4"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: Optional[float] = None
    request_timeout_seconds: float = 60.0

    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    cors_origins: str = "*"
    seed_demo: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        env = os.environ if environ is None else environ
        values = {
            "completion_backend": env.get("FLOWCANVAS_COMPLETION_BACKEND", "openai").strip().lower(),
            "model": env.get("FLOWCANVAS_MODEL", "gpt-4"),
            "system_prompt": env.get("FLOWCANVAS_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
            "request_timeout_seconds": float(env.get("FLOWCANVAS_TIMEOUT", "60")),
            "host": env.get("FLOWCANVAS_HOST", "0.0.0.0"),
            "port": int(env.get("FLOWCANVAS_PORT", "3001")),
            "log_level": env.get("FLOWCANVAS_LOG_LEVEL", "INFO").upper(),
            "cors_origins": env.get("FLOWCANVAS_CORS_ORIGINS", "*"),
            "seed_demo": _env_bool(env.get("FLOWCANVAS_SEED_DEMO"), False),
        }
        temperature = env.get("FLOWCANVAS_TEMPERATURE")
        if temperature:
            values["temperature"] = float(temperature)
        return cls(**values)

    def allowed_origins(self):
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
