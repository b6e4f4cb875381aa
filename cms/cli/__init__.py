"""Command-line interface for the CMS core."""

import rich_click as click

from .. import __version__
from ..config import CMSConfig
from ..core.logging import configure_logging
from .data import export_command, field_types_command, import_command, stats_command
from .validate import validate_command

# Configure rich-click styling
click.rich_click.TEXT_MARKUP = "rich"
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.STYLE_OPTION = "bold cyan"
click.rich_click.STYLE_ARGUMENT = "bold yellow"
click.rich_click.STYLE_COMMAND = "bold green"
click.rich_click.STYLE_SWITCH = "bold blue"


@click.group(name="cms")
@click.version_option(version=__version__, prog_name="cms")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="🪵 **Log level** for diagnostics written to stderr",
)
def main(log_level: str) -> None:
    """🗂️ **Headless CMS core** - schemas, entries and media bookkeeping.

    Validate, export and import CMS bundles, and inspect the data stored
    in a local data directory.
    """
    config = CMSConfig()
    configure_logging(
        environment=config.environment,
        log_level=log_level,
        json_logs=config.json_logs,
    )


main.add_command(validate_command)
main.add_command(export_command)
main.add_command(import_command)
main.add_command(stats_command)
main.add_command(field_types_command)


if __name__ == "__main__":
    main()


__all__ = ["main"]
