"""Writing payloads to a file as JSON lines, pretty JSON, CSV rows or text."""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, TextIO

logger = logging.getLogger(__name__)


class OutputFormat(Enum):
    """How each payload is laid out in the file."""

    JSON = "json"
    CSV = "csv"
    TEXT = "text"
    PRETTY = "pretty"


def _json_safe(value: Any) -> Any:
    """Replace values JSON cannot hold: non-finite floats become null."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def _dumps(value: Any, pretty: bool = False) -> str:
    if pretty:
        return json.dumps(_json_safe(value), sort_keys=True, ensure_ascii=False, indent=2)
    return json.dumps(
        _json_safe(value), sort_keys=True, ensure_ascii=False, separators=(",", ":")
    )


def _csv_cell(value: Any) -> str:
    if isinstance(value, str):
        return '"' + value.replace('"', '""') + '"'
    return _dumps(value)


def format_payload(payload: Any, output_format: OutputFormat, channel_name: str) -> str:
    """Render one payload as the text of its record, without the final newline.

    Object keys are written in sorted order. CSV needs an object payload and
    raises ``ValueError`` otherwise.
    """
    if output_format is OutputFormat.JSON:
        return _dumps(payload)
    if output_format is OutputFormat.PRETTY:
        return _dumps(payload, pretty=True)
    if output_format is OutputFormat.CSV:
        if not isinstance(payload, Mapping):
            raise ValueError("CSV format requires JSON object payload")
        return ",".join(_csv_cell(payload[key]) for key in sorted(payload, key=str))
    return f"[{channel_name}] {_dumps(payload)}"


def _param(
    parameters: Mapping[str, Any], key: str, default: Any, accepts: Callable[[Any], bool]
) -> Any:
    value = parameters.get(key, default)
    return value if accepts(value) else default


def _parse_format(value: Any) -> OutputFormat:
    if isinstance(value, OutputFormat):
        return value
    try:
        return OutputFormat(value)
    except (ValueError, TypeError):
        return OutputFormat.JSON


@dataclass
class FileOutputConfig:
    """Where and how a file output writes its payloads."""

    file_path: Path
    format: OutputFormat = OutputFormat.JSON
    append: bool = True
    create_dirs: bool = True
    buffer_size: int = 8192
    auto_flush: bool = False

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]]) -> "FileOutputConfig":
        """Build and validate a configuration from stage parameters.

        ``file_path`` is required; other values that are missing or of the
        wrong type take their defaults. Raises ``ValueError``.
        """
        params = parameters or {}
        file_path = params.get("file_path")
        if not isinstance(file_path, (str, os.PathLike)):
            raise ValueError("file_path parameter is required for file output processor")

        config = cls(
            file_path=Path(file_path),
            format=_parse_format(params.get("format", OutputFormat.JSON.value)),
            append=_param(params, "append", True, lambda v: isinstance(v, bool)),
            create_dirs=_param(params, "create_dirs", True, lambda v: isinstance(v, bool)),
            buffer_size=_param(
                params,
                "buffer_size",
                8192,
                lambda v: isinstance(v, int) and not isinstance(v, bool) and v >= 0,
            ),
            auto_flush=_param(params, "auto_flush", False, lambda v: isinstance(v, bool)),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ``ValueError`` for an empty path, or a missing parent directory
        when directories are not to be created."""
        if os.fspath(self.file_path) in ("", "."):
            raise ValueError("file_path cannot be empty")
        if not self.create_dirs:
            parent = self.file_path.parent
            if not parent.exists():
                raise ValueError(
                    f"Parent directory '{parent}' does not exist and create_dirs is false"
                )


class FileOutputProcessor:
    """Writes payloads to a file, one record per payload."""

    def __init__(self, name: str, parameters: Optional[Mapping[str, Any]]) -> None:
        self.name = name
        self.config = FileOutputConfig.from_parameters(parameters)
        self._file: Optional[TextIO] = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """Open the output file, creating parent directories if configured."""
        self.close()
        path = self.config.file_path
        if self.config.create_dirs:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise OSError(f"Failed to create directory '{path.parent}': {exc}") from exc

        buffering = self.config.buffer_size if self.config.buffer_size > 1 else -1
        try:
            self._file = open(
                path,
                "a" if self.config.append else "w",
                encoding="utf-8",
                newline="",
                buffering=buffering,
            )
        except OSError as exc:
            raise OSError(f"Failed to open file '{path}': {exc}") from exc

        logger.info(
            "File output processor '%s' opened file '%s' (format: %s, append: %s)",
            self.name,
            path,
            self.config.format.value,
            self.config.append,
        )

    def write_payload(self, channel_name: str, payload: Any) -> None:
        """Write one payload in the configured format.

        Raises ``RuntimeError`` if the file is not open and ``ValueError`` if
        the payload does not suit the format.
        """
        if self._file is None:
            raise RuntimeError("File writer not initialised")
        line = format_payload(payload, self.config.format, channel_name)
        self._file.write(line + "\n")
        if self.config.auto_flush:
            self._file.flush()

    def flush(self) -> None:
        """Push buffered records to the file."""
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        """Flush and close the file, if it is open."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "FileOutputProcessor":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()