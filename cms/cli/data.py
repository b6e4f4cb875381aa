"""CLI commands for moving and inspecting stored CMS data.

Implements `cms export`, `cms import`, `cms stats` and `cms field-types`.
The data commands operate on the JSON file store in a data directory.
"""

from pathlib import Path
import sys
from typing import Any

from rich.table import Table
import rich_click as click

from ..core.exceptions import CMSError
from ..core.field_types import FIELD_CATEGORIES, FIELD_TYPES, defaults_for
from ..storage import StorageError
from .common import (
    EXIT_FILE_ERROR,
    EXIT_INTERNAL_ERROR,
    EXIT_INVALID,
    EXIT_OK,
    OUTPUT_FORMATS,
    BundleFileError,
    console,
    data_dir_option,
    dump_document,
    emit_error,
    open_manager,
    read_bundle_file,
    should_use_rich_formatting,
)


@click.command("export")
@data_dir_option
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="💾 **Write the bundle to a file** instead of stdout",
    metavar="FILE",
)
@click.option(
    "--format",
    type=click.Choice(["json", "yaml"]),
    default=None,
    help="📋 **Bundle format** (default: from the output suffix, else json)",
)
def export_command(data_dir: str | None, output: str | None, format: str | None) -> None:
    """📤 **Export every collection as a bundle**

    **Examples:**

    ```bash
    cms export > backup.json
    cms export -o backup.yaml --data-dir ./data
    ```
    """
    if format is None:
        suffix = Path(output).suffix.lower() if output else ""
        format = "yaml" if suffix in (".yaml", ".yml") else "json"

    try:
        bundle = open_manager(data_dir).export_bundle()
    except (CMSError, StorageError) as e:
        emit_error(format, "export_error", f"Export failed: {e}")
        sys.exit(EXIT_INTERNAL_ERROR)

    document = dump_document(bundle.to_storage(), format)
    if output:
        try:
            Path(output).write_text(document, encoding="utf-8")
        except OSError as e:
            emit_error(format, "file_write_error", f"Cannot write file: {e}")
            sys.exit(EXIT_FILE_ERROR)
        click.echo(f"✅ Exported bundle to {output}", err=True)
    else:
        click.echo(document)
    sys.exit(EXIT_OK)


@click.command("import")
@click.argument("file", type=click.Path(exists=False), required=True)
@data_dir_option
@click.option(
    "--validate/--no-validate",
    default=True,
    show_default=True,
    help="🔍 **Validate the bundle** before replacing stored data",
)
@click.option(
    "--format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="📋 **Output format** for the import report",
)
def import_command(file: str, data_dir: str | None, validate: bool, format: str) -> None:
    """📥 **Import a bundle**, replacing every collection it contains

    **Exit Codes:**
    - `0`: Imported ✅
    - `1`: Bundle invalid or rejected ❌
    - `2`: File not found, not readable or not parseable 📁
    - `4`: Internal error 💥
    """
    try:
        data = read_bundle_file(Path(file))
    except BundleFileError as e:
        emit_error(format, e.error_type, e.message, file=file)
        sys.exit(EXIT_FILE_ERROR)

    try:
        manager = open_manager(data_dir)
        if validate:
            result = manager.validate_bundle(data)
            if not result.is_valid:
                if format == "json":
                    click.echo(
                        dump_document(
                            {"status": "invalid", "file": file, **result.to_dict()},
                            format,
                        )
                    )
                else:
                    click.echo(str(result))
                sys.exit(EXIT_INVALID)

        bundle = manager.import_bundle(data)
    except CMSError as e:
        emit_error(format, e.code, str(e), file=file)
        sys.exit(EXIT_INVALID)
    except StorageError as e:
        emit_error(format, "storage_error", str(e), file=file)
        sys.exit(EXIT_INTERNAL_ERROR)

    summary = {
        "components": len(bundle.components),
        "contentTypes": len(bundle.content_types),
        "entries": len(bundle.entries),
        "mediaFiles": len(bundle.media_files),
    }
    if format == "json":
        click.echo(dump_document({"status": "imported", "file": file, **summary}, format))
    else:
        click.echo(f"✅ Imported {file}")
        for key, count in summary.items():
            click.echo(f"  {key}: {count}")
    sys.exit(EXIT_OK)


def _stats_rows(stats: Any) -> list[tuple[str, str]]:
    return [
        ("Content types", str(stats.content_types.total)),
        ("  single / collection", f"{stats.content_types.single_types} / "
         f"{stats.content_types.collection_types}"),
        ("Components", str(stats.components.total)),
        ("  repeatable", str(stats.components.repeatable)),
        ("Entries", str(stats.entries.total)),
        *(
            (f"  {status}", str(count))
            for status, count in stats.entries.by_status.items()
        ),
        ("Media files", str(stats.media.total)),
        ("  total size", str(stats.media.total_size)),
        ("Locales", str(stats.locales)),
        ("API tokens", str(stats.api_tokens)),
        ("Webhooks", str(stats.webhooks)),
    ]


@click.command("stats")
@data_dir_option
@click.option(
    "--format",
    type=click.Choice(OUTPUT_FORMATS),
    default="table",
    show_default=True,
    help="📋 **Output format**",
)
@click.option("--force-colors", is_flag=True, hidden=True)
def stats_command(data_dir: str | None, format: str, force_colors: bool) -> None:
    """📊 **Show dashboard statistics** for the stored data"""
    try:
        stats = open_manager(data_dir).dashboard_stats()
    except (CMSError, StorageError) as e:
        emit_error(format, "stats_error", f"Cannot read data: {e}")
        sys.exit(EXIT_INTERNAL_ERROR)

    if format != "table":
        click.echo(dump_document(stats.to_storage(), format))
        return

    rows = _stats_rows(stats)
    if should_use_rich_formatting(force_colors):
        table = Table(title="CMS statistics")
        table.add_column("Metric", style="bold")
        table.add_column("Value", style="cyan", justify="right")
        for name, value in rows:
            table.add_row(name, value)
        console.print(table)
    else:
        for name, value in rows:
            click.echo(f"{name}: {value}")


@click.command("field-types")
@click.option(
    "--category",
    type=click.Choice(list(FIELD_CATEGORIES)),
    default=None,
    help="🏷️ **Only show one category**",
)
@click.option(
    "--format",
    type=click.Choice(OUTPUT_FORMATS),
    default="table",
    show_default=True,
    help="📋 **Output format**",
)
@click.option("--force-colors", is_flag=True, hidden=True)
def field_types_command(category: str | None, format: str, force_colors: bool) -> None:
    """🧩 **List the field type catalog**"""
    specs = [
        spec
        for spec in FIELD_TYPES.values()
        if category is None or spec.category == category
    ]

    if format != "table":
        click.echo(
            dump_document(
                [
                    {
                        "type": spec.type.value,
                        "label": spec.label,
                        "category": spec.category,
                        "description": spec.description,
                        "isComplex": spec.is_complex,
                        "defaults": defaults_for(spec.type.value),
                    }
                    for spec in specs
                ],
                format,
            )
        )
        return

    if should_use_rich_formatting(force_colors):
        table = Table(title="Field types")
        table.add_column("Type", style="bold green")
        table.add_column("Label")
        table.add_column("Category", style="magenta")
        table.add_column("Description", style="dim")
        for spec in specs:
            table.add_row(spec.type.value, spec.label, spec.category, spec.description)
        console.print(table)
    else:
        for spec in specs:
            click.echo(f"{spec.type.value:<22} {spec.category:<10} {spec.label}")
