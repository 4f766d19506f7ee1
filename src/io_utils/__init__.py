"""Input helpers for configuration files.

Exports:
    load_app_config: Read and validate the governor configuration file.
"""

from .loader import load_app_config

__all__ = ["load_app_config"]
