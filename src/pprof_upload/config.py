"""Configuration for an upload run.

An UploadConfig is built once from the command line, optionally layered over a
YAML defaults file, and passed explicitly to the loader and uploader.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import yaml

from pprof_upload.errors import ConfigError

DEFAULT_SERVICE_NAME = "uploaded-profiles"
DEFAULT_API_ADDR = "cloudprofiler.googleapis.com:443"


class UploadConfig(BaseModel):
    """Settings for a single pprof-upload invocation."""

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1, description="Cloud project ID to upload to")
    service_name: str = Field(
        default=DEFAULT_SERVICE_NAME,
        min_length=1,
        description="Deployment target of the uploaded profiles",
    )
    service_version: str | None = Field(
        default=None,
        description="Version label; the invocation time is used when unset",
    )
    api_addr: str = Field(default=DEFAULT_API_ADDR, description="Profiler API address")
    merge: bool = Field(default=True, description="Upload one merged profile instead of each file")
    paths: list[Path] = Field(default_factory=list, description="Profile files to upload")

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}"


class ConfigDefaults(BaseModel):
    """Keys accepted in a YAML defaults file."""

    model_config = ConfigDict(extra="forbid")

    project_id: str | None = None
    service_name: str | None = None
    service_version: str | None = None
    api_addr: str | None = None
    merge: bool | None = None


class ConfigLoader:
    """Loads upload defaults from YAML files."""

    def load_file(self, path: Path | str) -> ConfigDefaults:
        """Load defaults from a YAML file.

        Keys may be spelled with dashes or underscores, e.g. ``project-id``.

        Raises:
            ConfigError: If the file is unreadable or has unknown keys or bad values
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"failed to read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in config file {path}: {e}") from e

        return self._parse_defaults(data, source=str(path))

    def load_from_string(self, content: str) -> ConfigDefaults:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}") from e
        return self._parse_defaults(data, source="<string>")

    def _parse_defaults(self, data: Any, source: str) -> ConfigDefaults:
        if data is None:
            return ConfigDefaults()
        if not isinstance(data, dict):
            raise ConfigError(f"config file {source} must contain a mapping")

        normalized = {str(key).replace("-", "_"): value for key, value in data.items()}
        try:
            return ConfigDefaults(**normalized)
        except ValidationError as e:
            raise ConfigError(f"invalid config file {source}: {e}") from e


def build_config(defaults: ConfigDefaults | None = None, **overrides: Any) -> UploadConfig:
    """Build an UploadConfig from file defaults and explicit values.

    Explicit values that are None fall back to the file defaults, then to the
    UploadConfig defaults.

    Raises:
        ConfigError: If the combined values are invalid
    """
    values: dict[str, Any] = {}
    if defaults is not None:
        values.update(defaults.model_dump(exclude_none=True))
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return UploadConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
