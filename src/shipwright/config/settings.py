"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with SHIPWRIGHT_ prefix
3. shipwright.yaml in the manifests root
4. Field defaults (lowest)

Nested values use a double underscore delimiter:
  SHIPWRIGHT_POLICY_OVERRIDES__VOLUMES=append
"""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import shipwright.config.sources as sources
import shipwright.constants as constants
import shipwright.merge as merge
import shipwright.repository as repository

LogLevel = _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR"]


def _build_policy_table(overrides: dict[str, str]) -> merge.FieldPolicyTable:
    table = merge.default_policy_table()
    if overrides:
        table = table.with_overrides(overrides)
    return table


class Settings(_pydantic_settings.BaseSettings):
    """
    Shipwright settings.

    All settings can be overridden via environment variables with the
    SHIPWRIGHT_ prefix, e.g. SHIPWRIGHT_IMAGE_PREFIX=registry.example.com.

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (SHIPWRIGHT_*)
    3. shipwright.yaml in the manifests root
    4. Defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix=sources.ENV_PREFIX,
        env_nested_delimiter="__",  # SHIPWRIGHT_POLICY_OVERRIDES__VOLUMES
        extra="allow",  # Unknown keys are reported by `config show`
    )

    manifests_dir: _pathlib.Path = _pydantic.Field(
        default_factory=_pathlib.Path.cwd,
        description="Root of the manifests repository",
    )

    log_level: LogLevel = _pydantic.Field(
        default="WARNING",
        description="Log level when --verbose is not given",
    )

    image_prefix: str | None = _pydantic.Field(
        default=None,
        description="Registry prefix used when a manifest sets no image",
    )

    required_fields: list[str] = _pydantic.Field(
        default_factory=lambda: list(constants.DEFAULT_REQUIRED_FIELDS),
        description="Fields every merged manifest must set",
    )

    policy_overrides: dict[str, str] = _pydantic.Field(
        default_factory=dict,
        description="Dotted field path -> merge mode, applied over the built-in table",
    )

    verify: bool = _pydantic.Field(
        default=True,
        description="Verify merged manifests before printing them",
    )

    _policy_table: merge.FieldPolicyTable | None = _pydantic.PrivateAttr(default=None)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (SHIPWRIGHT_* env vars)
        3. yaml_settings (shipwright.yaml in the manifests root)
        4. (defaults via Field definitions), lowest
        """
        init_kwargs = getattr(init_settings, "init_kwargs", {})
        root = sources.find_manifests_root(init_kwargs.get("manifests_dir"))

        return (
            init_settings,
            env_settings,
            sources.YamlSettingsSource(settings_cls, root),
        )

    @_pydantic.field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: _typing.Any) -> _typing.Any:
        return value.upper() if isinstance(value, str) else value

    @_pydantic.model_validator(mode="after")
    def _check_policy_overrides(self) -> "Settings":
        """Bad overrides fail when settings are loaded, not on first merge."""
        _build_policy_table(self.policy_overrides)
        return self

    # =========================================================================
    # Derived objects
    # =========================================================================

    def policy_table(self) -> merge.FieldPolicyTable:
        """
        The effective field policy table (built-in table plus overrides).

        Built once per Settings instance.

        Raises:
            PolicyTableError: If an override is invalid or touches a locked field.
        """
        if self._policy_table is None:
            self._policy_table = _build_policy_table(self.policy_overrides)
        return self._policy_table

    def repository(self) -> repository.ManifestRepository:
        """A ManifestRepository configured from these settings."""
        return repository.ManifestRepository(
            self.manifests_dir,
            policies=self.policy_table(),
            required_fields=self.required_fields,
            image_prefix=self.image_prefix,
        )

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Unknown top-level keys (typos in shipwright.yaml or SHIPWRIGHT_* vars)."""
        return dict(self.model_extra) if self.model_extra else {}

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to dictionary (for JSON output)."""
        return {
            "manifests_dir": str(self.manifests_dir),
            "log_level": self.log_level,
            "image_prefix": self.image_prefix,
            "required_fields": list(self.required_fields),
            "policy_overrides": dict(self.policy_overrides),
            "verify": self.verify,
        }
