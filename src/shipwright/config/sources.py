"""Settings source that reads shipwright.yaml from the manifests root.

The file is optional. When present it must be a YAML mapping whose keys are
Settings fields, e.g.:

    image_prefix: registry.example.com/services
    required_fields: [name, image, regions, metadata, resources]
    policy_overrides:
      volumes: append

Environment variables (SHIPWRIGHT_*) and constructor arguments take
precedence over anything in the file.
"""

import collections.abc as _abc
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings

import shipwright.constants as constants
import shipwright.document as doc_model

# Prefix of every settings environment variable
ENV_PREFIX = "SHIPWRIGHT_"

# Environment variable naming the manifests root
ENV_MANIFESTS_DIR = f"{ENV_PREFIX}MANIFESTS_DIR"


class ConfigFileError(Exception):
    """Error loading or parsing a settings file."""

    def __init__(self, path: _pathlib.Path, message: str, *, line: int | None = None) -> None:
        self.path = path
        self.line = line
        where = f"{path}:{line}" if line is not None else str(path)
        super().__init__(f"Error in settings file {where}: {message}")


def find_manifests_root(explicit: str | _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Locate the manifests root.

    Priority: explicit argument, then SHIPWRIGHT_MANIFESTS_DIR, then the
    current directory.
    """
    if explicit is not None:
        return _pathlib.Path(explicit)
    if env_dir := _os.environ.get(ENV_MANIFESTS_DIR):
        return _pathlib.Path(env_dir)
    return _pathlib.Path.cwd()


def get_settings_file_path(root: _pathlib.Path) -> _pathlib.Path:
    return root / constants.SETTINGS_FILE


class YamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source backed by `<manifests root>/shipwright.yaml`.

    Line numbers of every key are kept so `config show` can point at where
    a value came from.
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        root: _pathlib.Path,
    ) -> None:
        super().__init__(settings_cls)
        self.path = get_settings_file_path(root)
        self.line_registry: doc_model.LineRegistry = {}
        self._data = self._load()

    def _load(self) -> dict[str, _typing.Any]:
        """
        Read the settings file.

        Returns:
            The parsed mapping, or {} if the file is missing or empty.

        Raises:
            ConfigFileError: If the file cannot be read, is malformed YAML,
                or is not a mapping at the top level.
        """
        if not self.path.is_file():
            return {}

        try:
            content = self.path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ConfigFileError(self.path, f"permission denied: {e}") from e
        except OSError as e:
            raise ConfigFileError(self.path, f"cannot read file: {e}") from e

        try:
            document, self.line_registry = doc_model.load(content)
        except doc_model.DocumentLoadError as e:
            raise ConfigFileError(self.path, e.message, line=e.line) from e

        if document is doc_model.NULL:
            return {}
        if not isinstance(document, doc_model.Mapping):
            raise ConfigFileError(
                self.path,
                f"settings must be a YAML mapping, got a {document.kind}",
            )
        return document.to_python()  # type: ignore[no-any-return]

    def get_line_info(self, key_path: tuple[str, ...]) -> tuple[int, int] | None:
        return self.line_registry.get(key_path)

    def origin_of(self, field_name: str) -> str | None:
        """`<file>:<line>` where field_name is set, or None if the file does not set it."""
        if field_name not in self._data:
            return None
        line_info = self.get_line_info((field_name,))
        if line_info is None:
            return str(self.path)
        line, _col = line_info
        return f"{self.path}:{line}"

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        value = self._data.get(field_name)
        return value, field_name, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        return dict(self._data)
