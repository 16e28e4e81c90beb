# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Configuration for the image creator: API key, endpoint base URL, model defaults and allow-list,
#          prompt length limit, timeout and retry settings. Values come from the process environment, then an
#          optional .env file, then built-in defaults.
# SRP and DRY check: Pass. Centralizes environment lookups; pipeline, CLI, MCP server and HTTP API read from here.
from dataclasses import dataclass, field
from enum import Enum
import logging
import math
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import SecretStr

from imagecreator.generation.errors import ConfigurationError, EncodeError
from imagecreator.generation.models import DEFAULT_MODEL

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MAX_PROMPT_LENGTH = 10000
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY_SECONDS = 0.5
DEFAULT_LOG_LEVEL = "INFO"


class ConfigEnum(Enum):
    """Environment variable names understood by the image creator."""
    GEMINI_API_KEY = "GEMINI_API_KEY"
    GEMINI_API_BASE_URL = "GEMINI_API_BASE_URL"
    GEMINI_DEFAULT_MODEL = "GEMINI_DEFAULT_MODEL"
    GEMINI_ALLOWED_MODELS = "GEMINI_ALLOWED_MODELS"
    MAX_PROMPT_LENGTH = "MAX_PROMPT_LENGTH"
    TIMEOUT_SECONDS = "IMAGECREATOR_TIMEOUT_SECONDS"
    MAX_ATTEMPTS = "IMAGECREATOR_MAX_ATTEMPTS"
    BASE_DELAY_SECONDS = "IMAGECREATOR_BASE_DELAY_SECONDS"
    DEADLINE_SECONDS = "IMAGECREATOR_DEADLINE_SECONDS"
    LOG_LEVEL = "IMAGECREATOR_LOG_LEVEL"


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    if not normalized:
        return None
    return normalized


def parse_model_list(value: Optional[str]) -> List[str]:
    """Split a comma separated model list, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_number(key: ConfigEnum, raw: Optional[str], default, cast, minimum):
    value = _normalize(raw)
    if value is None:
        return default
    try:
        parsed = cast(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {key.value}={value!r}; using default {default}")
        return default
    if not math.isfinite(parsed) or parsed < minimum:
        logger.warning(f"Ignoring out-of-range {key.value}={value!r}; using default {default}")
        return default
    return parsed


@dataclass
class ImageCreatorConfig:
    """Resolved configuration values."""
    api_key: Optional[SecretStr] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    default_model: str = DEFAULT_MODEL
    allowed_models: List[str] = field(default_factory=list)
    max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS
    deadline_seconds: Optional[float] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "ImageCreatorConfig":
        """Build a config from a name -> value mapping (environment-style strings)."""
        def get(key: ConfigEnum) -> Optional[str]:
            return _normalize(values.get(key.value))

        api_key = get(ConfigEnum.GEMINI_API_KEY)
        deadline = _parse_number(
            ConfigEnum.DEADLINE_SECONDS, values.get(ConfigEnum.DEADLINE_SECONDS.value), None, float, 0.001,
        )
        return cls(
            api_key=SecretStr(api_key) if api_key else None,
            api_base_url=(get(ConfigEnum.GEMINI_API_BASE_URL) or DEFAULT_API_BASE_URL).rstrip("/"),
            default_model=get(ConfigEnum.GEMINI_DEFAULT_MODEL) or DEFAULT_MODEL,
            allowed_models=parse_model_list(values.get(ConfigEnum.GEMINI_ALLOWED_MODELS.value)),
            max_prompt_length=_parse_number(
                ConfigEnum.MAX_PROMPT_LENGTH, values.get(ConfigEnum.MAX_PROMPT_LENGTH.value),
                DEFAULT_MAX_PROMPT_LENGTH, int, 1,
            ),
            timeout_seconds=_parse_number(
                ConfigEnum.TIMEOUT_SECONDS, values.get(ConfigEnum.TIMEOUT_SECONDS.value),
                DEFAULT_TIMEOUT_SECONDS, float, 0.001,
            ),
            max_attempts=_parse_number(
                ConfigEnum.MAX_ATTEMPTS, values.get(ConfigEnum.MAX_ATTEMPTS.value),
                DEFAULT_MAX_ATTEMPTS, int, 1,
            ),
            base_delay_seconds=_parse_number(
                ConfigEnum.BASE_DELAY_SECONDS, values.get(ConfigEnum.BASE_DELAY_SECONDS.value),
                DEFAULT_BASE_DELAY_SECONDS, float, 0.0,
            ),
            deadline_seconds=deadline,
            log_level=(get(ConfigEnum.LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper(),
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> "ImageCreatorConfig":
        """Load configuration; process environment wins over the .env file.

        Args:
            environ: Environment mapping (defaults to ``os.environ``).
            dotenv_path: Explicit .env file. Defaults to ``.env`` in the working directory when present.
        """
        environ = os.environ if environ is None else environ
        if dotenv_path is None:
            candidate = Path.cwd() / ".env"
            dotenv_path = candidate if candidate.is_file() else None

        merged: Dict[str, Optional[str]] = {}
        if dotenv_path is not None:
            merged.update(dotenv_values(dotenv_path))
            logger.debug(f"Loaded configuration file {dotenv_path}")
        for key in ConfigEnum:
            if key.value in environ:
                merged[key.value] = environ[key.value]
        return cls.from_mapping(merged)

    def require_api_key(self) -> SecretStr:
        if self.api_key is None or not self.api_key.get_secret_value().strip():
            raise ConfigurationError(
                f"{ConfigEnum.GEMINI_API_KEY.value} is not set. Export it or add it to a .env file."
            )
        return self.api_key

    def is_model_allowed(self, model: str) -> bool:
        # An empty allow-list permits every model.
        return not self.allowed_models or model in self.allowed_models

    def resolve_model(self, requested: Optional[str]) -> str:
        model = _normalize(requested) or self.default_model
        if model.startswith("models/"):
            model = model[len("models/"):]
        if not self.is_model_allowed(model):
            raise EncodeError(
                f"Model '{model}' is not in the allowed list ({', '.join(self.allowed_models)})"
            )
        return model

    def endpoint_for(self, model: str) -> str:
        return f"{self.api_base_url}/models/{model}:generateContent"
