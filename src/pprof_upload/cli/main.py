"""Main CLI entry point for pprof-upload.

Uploads pprof profiles to Cloud Profiler and prints the viewer URL.
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pprof_upload import __version__
from pprof_upload.config import (
    DEFAULT_API_ADDR,
    DEFAULT_SERVICE_NAME,
    ConfigDefaults,
    ConfigLoader,
    build_config,
)
from pprof_upload.engine import UploadEngine

# stdout carries only the viewer URL.
console = Console(stderr=True, soft_wrap=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pprof-upload")
@click.argument("files", nargs=-1, required=True, type=click.Path())
@click.option("--project-id", envvar="PPROF_UPLOAD_PROJECT_ID", help="Cloud project ID where the profile will be uploaded (required)")
@click.option("--service-name", envvar="PPROF_UPLOAD_SERVICE_NAME", help=f"Name of service for uploaded profiles [default: {DEFAULT_SERVICE_NAME}]")
@click.option("--service-version", envvar="PPROF_UPLOAD_SERVICE_VERSION", help="Version of service for uploaded profiles [default: current time]")
@click.option("--api-addr", envvar="PPROF_UPLOAD_API_ADDR", help=f"Profiler API address [default: {DEFAULT_API_ADDR}]")
@click.option("--merge/--no-merge", default=None, help="Upload one merged profile, or each file individually [default: merge]")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML file with defaults for the options above")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(
    files: tuple[str, ...],
    project_id: str | None,
    service_name: str | None,
    service_version: str | None,
    api_addr: str | None,
    merge: bool | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Upload pprof profiles to Cloud Profiler for visualization.

    FILES are pprof profiles of the same type (e.g. all CPU or all heap).
    They are merged into one profile unless --no-merge is given.

    \b
    Examples:
      pprof-upload --project-id my-project cpu.pb.gz
      pprof-upload --project-id my-project --service-name api heap1.pb.gz heap2.pb.gz
    """
    _configure_logging(verbose)

    try:
        defaults = ConfigLoader().load_file(config_path) if config_path else ConfigDefaults()
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    if not (project_id or defaults.project_id):
        raise click.UsageError("--project-id is required")

    try:
        config = build_config(
            defaults,
            project_id=project_id,
            service_name=service_name,
            service_version=service_version,
            api_addr=api_addr,
            merge=merge,
            paths=list(files),
        )

        engine = UploadEngine(config, notify=console.print)
        result = engine.run()

        click.echo(result.url)

    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if verbose:
            import traceback
            console.print(escape(traceback.format_exc()))
        sys.exit(1)


if __name__ == "__main__":
    cli()
