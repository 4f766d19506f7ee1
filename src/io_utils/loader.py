# SPDX-License-Identifier: MIT
"""Utilities for loading governor configuration from disk.

The helpers in this module centralise file-system access for configuration
files and include lightweight error handling so callers receive concise
exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

import logfire
import yaml
from pydantic import TypeAdapter, ValidationError

from models import GovernorConfig
from utils import ErrorHandler, LoggingErrorHandler

T = TypeVar("T")


def _read_file(path: Path, error_handler: ErrorHandler | None = None) -> str:
    """Return the contents of ``path``.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If the file cannot be read.
    """
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("fs.read_text", attributes={"path": str(path)}):
        try:
            with path.open("r", encoding="utf-8") as file:
                text = file.read().strip()
                logfire.debug("Read text file", path=str(path), bytes=len(text))
                return text
        except FileNotFoundError:
            raise
        except OSError as exc:
            handler.handle(f"Error reading configuration file {path}", exc)
            raise RuntimeError(
                f"An error occurred while reading the configuration file: {exc}"
            ) from exc


def _read_yaml_file(
    path: Path,
    schema: type[T],
    error_handler: ErrorHandler | None = None,
) -> T:
    """Return YAML data loaded from ``path`` validated against ``schema``.

    An empty document validates as an empty mapping.
    """
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("fs.read_yaml", attributes={"path": str(path)}):
        try:
            adapter = TypeAdapter(schema)
            data = yaml.safe_load(_read_file(path, handler)) or {}
            return adapter.validate_python(data)
        except FileNotFoundError:
            raise
        except (RuntimeError, ValidationError, yaml.YAMLError, ValueError) as exc:
            handler.handle(f"Error reading YAML file {path}", exc)
            raise RuntimeError(
                f"An error occurred while reading the YAML file: {exc}"
            ) from exc


def load_app_config(
    base_dir: Path | str = Path("config"),
    filename: Path | str = Path("app.yaml"),
) -> GovernorConfig:
    """Return governor configuration from ``base_dir``.

    A missing file yields the built-in defaults.
    """
    path = Path(base_dir) / Path(filename)
    try:
        return _read_yaml_file(path, GovernorConfig)
    except FileNotFoundError:
        logfire.debug("No configuration file, using defaults", path=str(path))
        return GovernorConfig()


__all__ = ["load_app_config"]
