"""
TASKAI - Settings
=================
Environment-driven settings for the backlog generator and CLI.

    TASKAI_LLM_CMD          command used for text generation (default: "claude -p")
    TASKAI_LLM_MODEL        model name passed as --model (optional)
    TASKAI_LLM_TIMEOUT_SEC  per-call timeout in seconds (default: 180)
    TASKAI_LLM_RETRIES      extra attempts after a failed call (default: 2)
    TASKAI_LANG             prompt language, "en" or "fr" (default: "en")
    TASKAI_STYLE            backlog style hint (default: "standard")
"""

import os
import shlex
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import GenerationError, TaskaiError

SUPPORTED_LANGUAGES = ("en", "fr")

ENV_PREFIX = "TASKAI_"


class Settings(BaseModel):
    """Generator and CLI settings"""
    llm_cmd: str = "claude -p"
    llm_model: Optional[str] = None
    llm_timeout_sec: int = Field(default=180, gt=0)
    llm_retries: int = Field(default=2, ge=0)
    lang: str = "en"
    style: str = "standard"

    @field_validator("lang")
    @classmethod
    def _known_language(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"unsupported language '{value}', expected one of {SUPPORTED_LANGUAGES}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from TASKAI_* variables; unset or blank ones keep defaults"""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        try:
            return cls(**values)
        except ValidationError as e:
            raise TaskaiError(f"invalid settings: {e}", rule="invalid-config") from e

    def command(self) -> List[str]:
        cmd = shlex.split(self.llm_cmd.strip()) if self.llm_cmd.strip() else []
        if not cmd:
            raise GenerationError("TASKAI_LLM_CMD is empty")
        return cmd
