"""Typer CLI for imagescan."""

import contextlib
import logging
import sys
from typing import IO, Iterator

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from imagescan.config import settings
from imagescan.errors import ScanError, UsageError
from imagescan.models import Results, ScanOptions
from imagescan.report.factory import FORMATS, new_writer
from imagescan.scanner.service import ScanService

# Exit status for command line usage errors (sysexits EX_USAGE)
EXIT_USAGE = 64
EXIT_FAILURE = 1

VULN_TYPES = ("os", "library")

app = typer.Typer(
    name="imagescan",
    help="Scan container images and dependency manifests for known vulnerabilities.",
)
err_console = Console(stderr=True)


def _configure_logging(debug: bool, quiet: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug)],
        force=True,
    )


def _usage_error(ctx: typer.Context, message: str) -> typer.Exit:
    err_console.print(ctx.get_usage(), markup=False, highlight=False)
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(EXIT_USAGE)


def _parse_vuln_types(ctx: typer.Context, raw: str) -> list[str]:
    types = [t.strip() for t in raw.split(",") if t.strip()]
    unknown = [t for t in types if t not in VULN_TYPES]
    if unknown:
        raise _usage_error(ctx, f"unknown vulnerability type(s): {', '.join(unknown)}")
    return types


@contextlib.contextmanager
def _open_output(path: str) -> Iterator[IO[str]]:
    if not path:
        yield sys.stdout
        return
    with open(path, "w", encoding="utf-8") as handle:
        yield handle


def _render(ctx: typer.Context, output_format: str, output: str, os_family: str, os_version: str, results: Results) -> None:
    if output_format not in FORMATS:
        raise _usage_error(ctx, f"unknown format {output_format!r}; expected one of {', '.join(FORMATS)}")
    try:
        with _open_output(output) as handle:
            new_writer(output_format, handle).write(os_family, os_version, results)
    except OSError as exc:
        err_console.print(f"[red]Error:[/red] failed to open output {escape(output)}: {escape(str(exc))}")
        raise typer.Exit(EXIT_FAILURE)
    except ScanError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FAILURE)


def _exit_for_findings(results: Results, exit_code: int) -> None:
    if exit_code and any(result.vulnerabilities for result in results):
        raise typer.Exit(exit_code)


@app.command()
def scan(
    ctx: typer.Context,
    image: str = typer.Argument("", help="Image reference, e.g. alpine:3.10"),
    input_path: str = typer.Option("", "--input", "-i", help="Image archive from `docker save`; '-' reads stdin"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
    output: str = typer.Option("", "--output", "-o", help="Write the report to a file instead of stdout"),
    vuln_type: str = typer.Option(",".join(settings.vuln_type), "--vuln-type", help="Comma-separated: os, library"),
    skip_dir: list[str] = typer.Option([], "--skip-dir", help="Ignore dependency manifests under this directory"),
    exit_code: int = typer.Option(0, "--exit-code", help="Exit code when vulnerabilities are found"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
):
    """Scan a container image or image archive."""
    _configure_logging(debug, quiet)
    options = ScanOptions(vuln_type=_parse_vuln_types(ctx, vuln_type), skip_dirs=skip_dir)

    service = ScanService()
    try:
        report = service.scan_image(image, input_path, options)
    except UsageError as exc:
        raise _usage_error(ctx, str(exc))
    except ScanError as exc:
        logging.getLogger(__name__).debug("scan failed at stage %s", exc.stage.value, exc_info=exc)
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FAILURE)

    _render(ctx, output_format, output, report.os_family, report.os_version, report.results)
    _exit_for_findings(report.results, exit_code)


@app.command(name="scan-file")
def scan_file(
    ctx: typer.Context,
    path: str = typer.Argument(help="Dependency manifest, e.g. Pipfile.lock or package-lock.json"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
    output: str = typer.Option("", "--output", "-o", help="Write the report to a file instead of stdout"),
    exit_code: int = typer.Option(0, "--exit-code", help="Exit code when vulnerabilities are found"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
):
    """Scan a single dependency manifest."""
    _configure_logging(debug, quiet)

    service = ScanService()
    try:
        with open(path, "rb") as stream:
            results = service.scan_file(stream)
    except OSError as exc:
        raise _usage_error(ctx, f"cannot open {path}: {exc.strerror or exc}")
    except ScanError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FAILURE)

    _render(ctx, output_format, output, "", "", results)
    _exit_for_findings(results, exit_code)


if __name__ == "__main__":
    app()
