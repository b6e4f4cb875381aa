"""CLI validation command implementation.

This module implements the `cms validate` command: an offline check of an
export bundle that reports every problem found, in table, compact, JSON or
YAML form.
"""

from dataclasses import replace
from pathlib import Path
import sys
import time
import traceback
from typing import Any

from rich.table import Table
import rich_click as click

from ..config import CMSConfig
from ..validation import BundleValidator, ValidationResult
from ..validation.errors import ValidationError
from .common import (
    EXIT_FILE_ERROR,
    EXIT_INTERNAL_ERROR,
    EXIT_INVALID,
    EXIT_OK,
    BundleFileError,
    console,
    dump_document,
    emit_error,
    read_bundle_file,
    should_use_rich_formatting,
)


def _bundle_counts(data: Any) -> dict[str, int]:
    """Record counts per collection, for reporting."""
    if not isinstance(data, dict):
        return {}
    return {
        key: len(data[key])
        for key in ("components", "contentTypes", "entries", "mediaFiles")
        if isinstance(data.get(key), list)
    }


def _location(issue: Any) -> str:
    if issue.record and issue.field:
        return f"{issue.record}.{issue.field}"
    return issue.record or issue.field or ""


def _output_table_format(
    result: ValidationResult,
    file_path: str,
    verbose: bool,
    check_time_ms: float,
    counts: dict[str, int],
    force_colors: bool = False,
) -> None:
    """Output validation result in table format."""
    rich = should_use_rich_formatting(force_colors)

    if result.is_valid:
        if rich:
            console.print("✅ [bold green]Validation successful[/bold green]")
            console.print()
            info_table = Table(show_header=False, box=None, padding=(0, 1))
            info_table.add_row("[bold]File:[/bold]", f"[cyan]{file_path}[/cyan]")
            for key, count in counts.items():
                info_table.add_row(f"[bold]{key}:[/bold]", str(count))
            if verbose:
                info_table.add_row(
                    "[bold]Check time:[/bold]", f"[dim]{check_time_ms:.1f}ms[/dim]"
                )
            console.print(info_table)
        else:
            click.echo("✅ Validation successful")
            click.echo()
            click.echo(f"File: {file_path}")
            for key, count in counts.items():
                click.echo(f"{key}: {count}")
            if verbose:
                click.echo(f"Checked in: {check_time_ms:.1f}ms")
    elif rich:
        console.print("❌ [bold red]Validation failed[/bold red]")
        console.print()
        error_table = Table(title=f"{file_path}: {result.error_count} errors")
        error_table.add_column("#", style="dim")
        error_table.add_column("Type", style="red")
        error_table.add_column("Location", style="yellow")
        error_table.add_column("Message")
        for i, error in enumerate(result.errors, 1):
            error_table.add_row(str(i), error.type, _location(error), error.message)
        console.print(error_table)
    else:
        click.echo("❌ Validation failed")
        click.echo()
        click.echo(f"File: {file_path}")
        click.echo(f"Errors found: {result.error_count}")
        click.echo()
        for error in result.errors:
            location = _location(error)
            if location:
                click.echo(f"❌ {error.type} in '{location}': {error.message}")
            else:
                click.echo(f"❌ {error.type}: {error.message}")

    if result.warnings:
        if rich:
            console.print()
            for warning in result.warnings:
                console.print(
                    f"⚠️  [yellow]{warning.type}[/yellow] "
                    f"[bold]{_location(warning)}[/bold]: [dim]{warning.message}[/dim]"
                )
        else:
            click.echo()
            for warning in result.warnings:
                click.echo(f"⚠️  {warning.type} in '{_location(warning)}': {warning.message}")

    if verbose and not result.is_valid:
        click.echo()
        click.echo(f"Total errors: {result.error_count}")
        click.echo(f"Total warnings: {result.warning_count}")


def _output_compact_format(
    result: ValidationResult, file_path: str, force_colors: bool = False
) -> None:
    """Output validation result on one status line plus the first errors."""
    status = "✅ VALID" if result.is_valid else "❌ INVALID"
    parts = [status, f"file={file_path}", f"errors={result.error_count}"]
    if result.warning_count:
        parts.append(f"warnings={result.warning_count}")

    if should_use_rich_formatting(force_colors):
        color = "green" if result.is_valid else "red"
        console.print(f"[bold {color}]{' '.join(parts)}[/bold {color}]")
    else:
        click.echo(" ".join(parts))

    for error in result.errors[:3]:
        location = _location(error)
        click.echo(f"  ❌ {location + ': ' if location else ''}{error.message}")


def _output_document_format(
    result: ValidationResult,
    file_path: str,
    verbose: bool,
    check_time_ms: float,
    counts: dict[str, int],
    format: str,
) -> None:
    """Output validation result as a JSON or YAML document."""
    output: dict[str, Any] = {
        "status": "valid" if result.is_valid else "invalid",
        "file": file_path,
        **result.to_dict(),
    }
    del output["valid"]
    if verbose:
        output["counts"] = counts
        output["check_time_ms"] = round(check_time_ms, 1)
    click.echo(dump_document(output, format))


def _validate_implementation(
    file: str,
    strict: bool,
    format: str,
    verbose: bool,
    force_colors: bool,
) -> None:
    file_path = Path(file)

    try:
        try:
            data = read_bundle_file(file_path)
        except BundleFileError as e:
            emit_error(format, e.error_type, e.message, file=str(file_path))
            sys.exit(EXIT_FILE_ERROR)

        start_time = time.perf_counter()
        validator = BundleValidator([CMSConfig().export_version])
        result = validator.validate(data)
        check_time_ms = (time.perf_counter() - start_time) * 1000

        # Apply strict mode (convert warnings to errors)
        if strict and result.warning_count > 0:
            result = replace(
                result,
                is_valid=False,
                errors=result.errors
                + [
                    ValidationError(
                        type=warning.type,
                        message=warning.message,
                        record=warning.record,
                        field=warning.field,
                    )
                    for warning in result.warnings
                ],
                warnings=[],
            )

        counts = _bundle_counts(data)
        if format == "table":
            _output_table_format(
                result, str(file_path), verbose, check_time_ms, counts, force_colors
            )
        elif format == "compact":
            _output_compact_format(result, str(file_path), force_colors)
        else:
            _output_document_format(
                result, str(file_path), verbose, check_time_ms, counts, format
            )

        sys.exit(EXIT_OK if result.is_valid else EXIT_INVALID)

    except KeyboardInterrupt:
        emit_error(format, "interrupted", "Validation interrupted by user", file=file)
        sys.exit(EXIT_INTERNAL_ERROR)
    except Exception as e:
        emit_error(format, "internal_error", f"Internal error: {e}", file=file)
        if verbose and format not in ("json", "yaml"):
            click.echo("\nFull traceback:")
            click.echo(traceback.format_exc())
        sys.exit(EXIT_INTERNAL_ERROR)


@click.command("validate")
@click.argument("file", type=click.Path(exists=False), required=True)
@click.option(
    "--strict",
    is_flag=True,
    help="⚡ **Enable strict mode** - warnings become errors",
)
@click.option(
    "--format",
    type=click.Choice(["table", "compact", "json", "yaml"]),
    default="table",
    help="📋 **Output format** for validation results",
    show_default=True,
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="🔍 **Show detailed information** - record counts and check time",
)
@click.option(
    "--force-colors",
    is_flag=True,
    help="🎨 **Force colored output** - useful for testing rich formatting",
    hidden=True,
)
def validate_command(
    file: str,
    strict: bool,
    format: str,
    verbose: bool,
    force_colors: bool,
) -> None:
    """🔍 **Validate an export bundle**

    Checks a JSON or YAML bundle offline and reports every problem found:
    duplicate names, invalid field definitions, dangling component
    references, component cycles and entries that break their schema.
    Stale usage or entry counts are reported as warnings.

    **Examples:**

    ```bash
    cms validate backup.json                 # Validate a bundle
    cms validate backup.yaml --format json   # JSON output
    cms validate backup.json --strict        # Warnings become errors
    ```

    **Exit Codes:**
    - `0`: Validation successful ✅
    - `1`: Validation failed ❌
    - `2`: File not found, not readable or not parseable 📁
    - `4`: Internal error 💥
    """
    _validate_implementation(file, strict, format, verbose, force_colors)
