"""Configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "conversion-config.json"

_CONFIG_SCAFFOLD_TEMPLATE = """{
  "source_root": "<REQUIRED: legacy VB.NET solution directory>",
  "source_paths": {
    "forms": "Forms",
    "business_objects": "BusinessObjects",
    "business_objects_base": "BusinessObjects/Base",
    "lists": "Lists"
  },
  "target_roots": {
    "api": "<REQUIRED: Admin API project root>",
    "ui": "<REQUIRED: Admin UI project root>",
    "shared": "<REQUIRED: shared DTO project root>"
  },
  "output_root": "output",
  "prompt_directory": null,
  "backend": {
    "command": ["claude"],
    "timeout_seconds": 900,
    "extra_args": []
  }
}
"""


def build_placeholder_configuration() -> str:
    """Build a JSON configuration template with placeholder values."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
