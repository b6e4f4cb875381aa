"""Helpers shared by the CLI commands."""

import json
from pathlib import Path
from typing import Any

from rich.console import Console
import rich_click as click
import yaml

from ..config import CMSConfig
from ..manager import ContentManager

# Create console for rich formatting - auto-detects if we're in interactive environment
console = Console()

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FILE_ERROR = 2
EXIT_INTERNAL_ERROR = 4

OUTPUT_FORMATS = ["table", "json", "yaml"]


def should_use_rich_formatting(force_colors: bool = False) -> bool:
    """Determine if we should use rich formatting based on environment."""
    return force_colors or console.is_terminal


class BundleFileError(Exception):
    """A bundle file is missing, unreadable or not parseable."""

    def __init__(self, error_type: str, message: str):
        super().__init__(message)
        self.error_type = error_type
        self.message = message


def read_bundle_file(file_path: Path) -> Any:
    """Load a JSON or YAML document; the format follows the file suffix.

    Raises:
        BundleFileError: If the file cannot be found, read or parsed
    """
    if not file_path.exists():
        raise BundleFileError("file_not_found", f"File not found: {file_path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise BundleFileError("file_read_error", f"Cannot read file: {e}") from e

    try:
        if file_path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(content)
        return json.loads(content)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise BundleFileError("parse_error", f"Cannot parse file: {e}") from e


def dump_document(data: Any, format: str) -> str:
    if format == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2)


def emit_error(format: str, error_type: str, message: str, **extra: Any) -> None:
    """Report a command failure in the requested output format."""
    if format in ("json", "yaml"):
        click.echo(
            dump_document(
                {"status": "error", "error_type": error_type, "message": message, **extra},
                format,
            )
        )
    else:
        click.echo(f"❌ {message}")


def open_manager(data_dir: str | None) -> ContentManager:
    """Build a manager over the file store in ``data_dir`` (or the configured one)."""
    config = CMSConfig()
    updates: dict[str, Any] = {"storage_backend": "file"}
    if data_dir:
        updates["data_dir"] = data_dir
    return ContentManager.from_config(config.model_copy(update=updates))


data_dir_option = click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="📁 **Data directory** of the file store (default: CMS_DATA_DIR or .cms-data)",
    metavar="DIR",
)
