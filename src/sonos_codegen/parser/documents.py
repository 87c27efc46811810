"""Read and validate the input documents.

JSON is parsed here and validated into the raw models of ``base``. Any
problem becomes a LoadError naming the document and the field path.
"""

import json
import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from sonos_codegen.errors import LoadError
from sonos_codegen.parser.base import Documentation, ModelInfo

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def read_documentation(file_path: Path) -> Documentation:
    """Read the aggregate documentation index."""
    return _read_document(file_path, Documentation)


def read_devices(devices_dir: Path) -> list[tuple[str, ModelInfo]]:
    """Read every per-device document in ``devices_dir``.

    Returns (document name, model) pairs sorted by model name, so callers
    never see the filesystem's iteration order.
    """
    if not devices_dir.is_dir():
        raise LoadError("device directory not found", document=str(devices_dir))

    seen: dict[str, str] = {}
    devices = []
    for file_path in sorted(devices_dir.glob("*.json")):
        if not file_path.is_file():
            continue
        info = _read_document(file_path, ModelInfo)
        if info.model in seen:
            raise LoadError(
                f"model {info.model!r} is already described by {seen[info.model]}",
                document=file_path.name,
                path="model",
                entity=info.model,
            )
        seen[info.model] = file_path.name
        devices.append((file_path.name, info))
        logger.debug("Read %s: model %s, %d services", file_path.name, info.model, len(info.services))

    if not devices:
        raise LoadError("no device documents found", document=str(devices_dir))

    devices.sort(key=lambda item: item[1].model)
    return devices


def _read_document(file_path: Path, model: type[M]) -> M:
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise LoadError(f"cannot read document: {e.strerror}", document=str(file_path)) from e
    except UnicodeDecodeError as e:
        raise LoadError(f"not valid UTF-8: {e.reason} (byte {e.start})", document=file_path.name) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LoadError(f"invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})", document=file_path.name) from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        more = e.error_count() - 1
        message = first["msg"]
        if more:
            message += f" (and {more} more error{'s' if more > 1 else ''})"
        raise LoadError(message, document=file_path.name, path=format_loc(first["loc"]) or "<root>") from e


def format_loc(loc: tuple) -> str:
    """Render a pydantic error location as ``services[0].actions[2].name``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path
