"""Generator configuration.

Settings come from an optional ``codegen.yaml``. Command-line options and
environment variables override the file.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from sonos_codegen.errors import CodegenError
from sonos_codegen.parser.documents import format_loc

DEFAULT_CONFIG_FILE = Path("codegen.yaml")


class GeneratorConfig(BaseModel):
    """Where to read the documents from and where to write the module."""

    model_config = ConfigDict(extra="forbid")

    data_dir: Path = Path("data")
    index_name: str = "documentation.json"
    devices_dir: str = "devices"
    output: Path = Path("generated.py")
    # Type or argument name -> dotted path of the class to annotate string values with.
    type_overrides: dict[str, str] = {}


def load_config(file_path: Path | None = None) -> GeneratorConfig:
    """Load configuration from ``file_path``, or from ``codegen.yaml`` if it exists."""
    if file_path is None:
        if not DEFAULT_CONFIG_FILE.is_file():
            return GeneratorConfig()
        file_path = DEFAULT_CONFIG_FILE

    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CodegenError(f"{file_path}: invalid YAML: {e}") from e

    if data is None:
        return GeneratorConfig()
    if not isinstance(data, dict):
        raise CodegenError(f"{file_path}: expected a mapping at the top level")

    try:
        return GeneratorConfig(**data)
    except ValidationError as e:
        first = e.errors()[0]
        raise CodegenError(f"{file_path}: {format_loc(first['loc']) or '<root>'}: {first['msg']}") from e
