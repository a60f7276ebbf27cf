"""
Configuration settings for hm.

This module defines the settings schema with Pydantic: the validated,
immutable ``HmSettings`` used by the rest of the program, the partial
``SettingsLayer`` each configuration source produces, and the
``EnvironmentOverrides`` source read from ``HM_*`` environment variables.
"""

from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_VERSION = "2024-06-01"

# Field name -> key used in the config file, flags and error messages
SETTING_KEYS: Dict[str, str] = {
    "api_key": "api-key",
    "api_endpoint": "api-endpoint",
    "api_version": "api-version",
    "deployment": "deployment",
    "system_prompt": "system-prompt",
}


class HmSettings(BaseModel):
    """
    Effective configuration for one hm invocation.

    Built once from the merged configuration layers and never modified
    afterwards. An empty ``system_prompt`` means the built-in prompt is used.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("api_key", "api_endpoint", "deployment")

    api_key: str = Field(
        default="",
        description="Azure OpenAI API key"
    )

    api_endpoint: str = Field(
        default="",
        description="Azure OpenAI endpoint base URL"
    )

    api_version: str = Field(
        default=DEFAULT_API_VERSION,
        description="Chat completions API version"
    )

    deployment: str = Field(
        default="",
        description="Azure OpenAI deployment ID"
    )

    system_prompt: Optional[str] = Field(
        default=None,
        description="System prompt overriding the built-in one"
    )

    @field_validator("api_key", "api_endpoint", "deployment")
    @classmethod
    def strip_value(cls, v: str) -> str:
        """Strip surrounding whitespace."""
        return v.strip()

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        """Fall back to the default API version when blank."""
        return v.strip() or DEFAULT_API_VERSION

    def missing_required(self) -> List[str]:
        """Keys of the required settings that are still empty."""
        return [SETTING_KEYS[name] for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    @property
    def is_configured(self) -> bool:
        """Check if every required setting is present."""
        return not self.missing_required()

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, excluding sensitive data."""
        data = self.model_dump()
        if data.get("api_key"):
            data["api_key"] = "***masked***"
        return data


class SettingsLayer(BaseModel):
    """
    Partial configuration produced by a single source.

    Accepts the dashed keys of the config file as well as the underscored
    field names used for command-line flags. Unset fields stay ``None`` and
    do not override lower layers.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api-key", "api_key"),
    )
    api_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api-endpoint", "api_endpoint"),
    )
    api_version: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api-version", "api_version"),
    )
    deployment: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("deployment", "deployment-id", "deployment_id"),
    )
    system_prompt: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("system-prompt", "system_prompt"),
    )

    def overrides(self) -> Dict[str, str]:
        """Only the settings this layer actually sets."""
        return self.model_dump(exclude_none=True)


class EnvironmentOverrides(BaseSettings):
    """
    Settings read from ``HM_*`` environment variables.

    A ``.env`` file may be passed as ``_env_file``; real environment
    variables take precedence over it. Empty variables are ignored.
    """

    model_config = SettingsConfigDict(
        env_prefix="HM_",
        env_file=None,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    api_key: Optional[str] = None
    api_endpoint: Optional[str] = None
    api_version: Optional[str] = None
    deployment: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HM_DEPLOYMENT", "HM_DEPLOYMENT_ID"),
    )
    system_prompt: Optional[str] = None

    def overrides(self) -> Dict[str, str]:
        """Only the settings present in the environment."""
        return self.model_dump(exclude_none=True)
