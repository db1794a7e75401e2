"""
Configuration for Polish It
===========================

Central configuration for the completion endpoint, retry policy and logging.
Values come from environment variables (a local ``.env`` file is loaded
first). Numeric overrides that fail to parse are ignored and the default is
kept.
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

TRUTHY_ENV_VALUES = {"1", "true", "yes", "on"}


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing or unusable."""


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY_ENV_VALUES


class Config(BaseModel):
    """Configuration settings for Polish It."""

    model_config = {"populate_by_name": True}

    # Completion endpoint (opaque to the improve pipeline)
    OPENAI_API_KEY: str = Field(default="", description="OpenAI (or compatible) API key")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Model used for improvements")
    OPENAI_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible endpoint",
    )
    TEMPERATURE: float = Field(default=0.3, ge=0.0, le=2.0, description="Sampling temperature")
    MAX_OUTPUT_TOKENS: Optional[int] = Field(
        default=None,
        ge=1,
        description="Optional cap on completion tokens per selection",
    )

    # Transport behaviour
    REQUEST_TIMEOUT: float = Field(default=180.0, gt=0, description="Seconds before a request times out")
    MAX_RETRIES: int = Field(default=3, ge=1, description="Attempts to open a completion stream")
    RETRY_DELAY: float = Field(default=2.0, ge=0.0, description="Seconds between stream open attempts")
    MAX_RESPONSE_CHARS: int = Field(
        default=200_000,
        ge=1,
        description="Largest streamed response accepted for one selection",
    )

    # Logging
    LOG_CHANNEL_NAME: str = Field(default="Polish It", description="Name of the activity log channel")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional file that mirrors the activity log")
    VERBOSE: bool = Field(default=False, description="Log debug details")
    EXTRA_VERBOSE: bool = Field(default=False, description="Log full prompts and responses")

    def __init__(self, **data: Any):
        super().__init__(**data)
        self.load_from_environment()

    def load_from_environment(self):
        """Load configuration from environment variables."""
        self.OPENAI_API_KEY = (
            os.getenv("POLISH_IT_OPENAI_API_KEY", "")
            or os.getenv("OPENAI_API_KEY", "")
            or self.OPENAI_API_KEY
        )
        self.OPENAI_MODEL = os.getenv("POLISH_IT_MODEL", self.OPENAI_MODEL)
        self.OPENAI_BASE_URL = os.getenv("POLISH_IT_BASE_URL", self.OPENAI_BASE_URL)
        self.LOG_CHANNEL_NAME = os.getenv("POLISH_IT_LOG_CHANNEL", self.LOG_CHANNEL_NAME)
        self.LOG_FILE = os.getenv("POLISH_IT_LOG_FILE", self.LOG_FILE) or None

        timeout_override = os.getenv("POLISH_IT_REQUEST_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    self.REQUEST_TIMEOUT = parsed
            except ValueError:
                pass

        retries_override = os.getenv("POLISH_IT_MAX_RETRIES")
        if retries_override:
            try:
                parsed = int(retries_override)
                if parsed >= 1:
                    self.MAX_RETRIES = parsed
            except ValueError:
                pass

        delay_override = os.getenv("POLISH_IT_RETRY_DELAY")
        if delay_override:
            try:
                parsed = float(delay_override)
                if parsed >= 0:
                    self.RETRY_DELAY = parsed
            except ValueError:
                pass

        max_chars_override = os.getenv("POLISH_IT_MAX_RESPONSE_CHARS")
        if max_chars_override:
            try:
                parsed = int(max_chars_override)
                if parsed > 0:
                    self.MAX_RESPONSE_CHARS = parsed
            except ValueError:
                pass

        temperature_override = os.getenv("POLISH_IT_TEMPERATURE")
        if temperature_override:
            try:
                parsed = float(temperature_override)
                if 0.0 <= parsed <= 2.0:
                    self.TEMPERATURE = parsed
            except ValueError:
                pass

        max_tokens_override = os.getenv("POLISH_IT_MAX_OUTPUT_TOKENS")
        if max_tokens_override:
            try:
                parsed = int(max_tokens_override)
                if parsed > 0:
                    self.MAX_OUTPUT_TOKENS = parsed
            except ValueError:
                pass

        self.VERBOSE = _env_flag("POLISH_IT_VERBOSE", self.VERBOSE)
        self.EXTRA_VERBOSE = _env_flag("POLISH_IT_EXTRA_VERBOSE", self.EXTRA_VERBOSE)
        if self.EXTRA_VERBOSE:
            self.VERBOSE = True

    def require_api_key(self) -> str:
        if not self.OPENAI_API_KEY:
            raise ConfigurationError(
                "OpenAI API key is not configured. Set OPENAI_API_KEY "
                "(or POLISH_IT_OPENAI_API_KEY) in the environment or .env file."
            )
        return self.OPENAI_API_KEY


config = Config()


def get_model_parameter_requirements(model_name: str) -> Dict[str, Any]:
    """
    Get parameter requirements for a specific model.
    Returns dict with the token parameter name and temperature support.
    """
    model_lower = model_name.lower()

    # GPT-5 series (reasoning models, no temperature support)
    if "gpt-5" in model_lower:
        return {
            "max_tokens_param": "max_completion_tokens",
            "supports_temperature": False,
        }

    # O1 and O3 reasoning models
    if any(x in model_lower for x in ["o1", "o3"]):
        return {
            "max_tokens_param": "max_completion_tokens",
            "supports_temperature": False,
        }

    return {
        "max_tokens_param": "max_tokens",
        "supports_temperature": True,
    }
