"""
Runtime configuration for the Mock Interviewer.

Reads the environment (and a ``.env`` file next to the package root) once
and validates it strictly. A missing model credential is fatal at startup.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv


__all__ = ["InterviewerConfig", "load_config"]


logger = logging.getLogger(__name__)

_ENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_AZURE_API_VERSION = "2024-08-01-preview"


@dataclass(frozen=True)
class InterviewerConfig:
    """Validated runtime settings."""

    model: str
    openai_api_key: str | None
    azure_endpoint: str | None
    azure_key: str | None
    azure_api_version: str
    question_count: int
    max_output_tokens: int
    streaming: bool
    service_host: str
    service_port: int
    service_url: str

    @property
    def use_azure(self) -> bool:
        return self.azure_endpoint is not None


def _positive_int(env: Mapping[str, str], name: str, default: str) -> int:
    raw = (env.get(name, default) or "").strip()
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer. Got: {raw}") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be at least 1. Got: {value}")
    return value


def _flag(env: Mapping[str, str], name: str, default: str) -> bool:
    raw = (env.get(name, default) or "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"{name} must be a boolean. Got: {raw}")


def load_config(env: Mapping[str, str] | None = None) -> InterviewerConfig:
    """
    Load configuration with strict validation.

    Args:
        env: Mapping to read instead of ``os.environ``. When omitted, the
            ``.env`` file is loaded into the process environment first.

    Returns:
        The validated configuration.

    Raises:
        RuntimeError: If no credential is configured or a value is invalid.

    Azure OpenAI requires:
        - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT

    Standard OpenAI requires:
        - OPENAI_API_KEY
        - OPENAI_MODEL (optional, defaults to gpt-4o-mini)
    """
    if env is None:
        load_dotenv(_ENV_PATH)
        env = os.environ

    azure_endpoint = env.get("AZURE_OPENAI_ENDPOINT") or None
    azure_key = env.get("AZURE_OPENAI_KEY") or None
    azure_deployment = env.get("AZURE_OPENAI_DEPLOYMENT") or None
    api_type = (env.get("OPENAI_API_TYPE") or "").lower()

    if api_type == "azure" or (azure_endpoint and azure_key and azure_deployment):
        if not all([azure_endpoint, azure_key, azure_deployment]):
            raise RuntimeError(
                "Azure OpenAI requires AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, "
                "and AZURE_OPENAI_DEPLOYMENT environment variables"
            )
        model = azure_deployment
        openai_api_key = None
    else:
        openai_api_key = (env.get("OPENAI_API_KEY") or "").strip()
        if not openai_api_key:
            raise RuntimeError(
                "No model credential configured. Set OPENAI_API_KEY, or "
                "AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY and AZURE_OPENAI_DEPLOYMENT."
            )
        model = (env.get("OPENAI_MODEL") or DEFAULT_MODEL).strip()
        azure_endpoint = None
        azure_key = None

    service_host = (env.get("SERVICE_HOST", "0.0.0.0") or "").strip()
    if not service_host:
        raise RuntimeError("SERVICE_HOST resolved to empty value.")

    service_port = _positive_int(env, "SERVICE_PORT", "8765")
    if service_port > 65535:
        raise RuntimeError(f"SERVICE_PORT must be in range 1-65535. Got: {service_port}.")

    config = InterviewerConfig(
        model=model,
        openai_api_key=openai_api_key,
        azure_endpoint=azure_endpoint,
        azure_key=azure_key,
        azure_api_version=env.get("AZURE_OPENAI_API_VERSION") or DEFAULT_AZURE_API_VERSION,
        question_count=_positive_int(env, "INTERVIEW_QUESTION_COUNT", "2"),
        max_output_tokens=_positive_int(env, "INTERVIEW_MAX_OUTPUT_TOKENS", "500"),
        streaming=_flag(env, "INTERVIEW_STREAMING", "true"),
        service_host=service_host,
        service_port=service_port,
        service_url=(env.get("SERVICE_URL") or "http://127.0.0.1:8765").rstrip("/"),
    )
    logger.info(
        "Loaded config: provider=%s model=%s questions=%d streaming=%s",
        "azure" if config.use_azure else "openai",
        config.model,
        config.question_count,
        config.streaming,
    )
    return config
