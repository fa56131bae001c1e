"""Root settings for the Attune engine."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from attune.config.models.observability import ObservabilityConfig
from attune.config.models.storage import StorageConfig
from attune.config.models.workflow import WorkflowConfig


# Merged TOML layers, installed by get_settings() before Settings() is built
_toml_layer: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Install the merged TOML layers read by every new Settings instance."""
    global _toml_layer
    _toml_layer = dict(config)


class TomlLayerSource(PydanticBaseSettingsSource):
    """Settings source exposing the installed TOML layers.

    Only keys that name a Settings field are passed through; unknown top-level
    tables in the files are ignored like unknown env vars.
    """

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_layer.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        fields = self.settings_cls.model_fields
        return {key: value for key, value in _toml_layer.items() if key in fields}


class Settings(BaseSettings):
    """Engine configuration.

    Precedence from highest to lowest: constructor arguments, ATTUNE_*
    environment variables (``__`` separates nested keys), the TOML layers,
    then the model defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="ATTUNE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="attune", description="Name bound to log events")
    debug: bool = Field(
        default=False, description="Log at DEBUG whatever observability.logging.level says"
    )

    workflow: WorkflowConfig = Field(
        default_factory=WorkflowConfig,
        description="Phase graph selection and processing loop parameters",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Session state backend and session lock",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Logging and metrics",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, TomlLayerSource(settings_cls))
