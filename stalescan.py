#!/usr/bin/env python3
import sys
import logging
import pathlib

import click

from stale_scanner.config import load_settings
from stale_scanner.report import print_json_report, print_text_report
from stale_scanner.scanner import Scanner, resolve_package_manager
from stale_scanner.sorting import sort_records

__version__ = "0.4.0"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SORT_COLUMNS_HELP = 'Name, Current, Date, Latest, "Behind By(Time)", "Behind By(Versions)"'


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _echo_progress(done: int, total: int) -> None:
    click.echo(f"\r  Fetching release dates ({done}/{total})", nl=done == total, err=True)


# --- CLI Definition ---
@click.group(context_settings=dict(help_option_names=['-h', '--help']))
@click.version_option(__version__, prog_name="stalescan")
def cli():
    """
    stalescan: security and version scanner for Ruby and JavaScript projects.
    Vulnerabilities come from bundle-audit and npm/yarn audit; outdated
    dependencies from bundle outdated and npm/yarn outdated, enriched with
    release dates from rubygems.org and the npm registry.
    """
    pass


@cli.command("scan")
@click.option("--path", "project_path", type=click.Path(exists=True, file_okay=False, resolve_path=True), default=".", show_default=True, help="Project directory to scan.")
@click.option("--gems-only", "-g", is_flag=True, help="Scan only Ruby gems.")
@click.option("--packages-only", "-p", is_flag=True, help="Scan only JavaScript packages.")
@click.option("--sort-by", "-s", type=str, default=None, help=f"Sort version tables by column: {SORT_COLUMNS_HELP}.")
@click.option("--asc", "--ascending", "ascending", is_flag=True, help="Sort in ascending order (default is descending).")
@click.option("--direct-only", is_flag=True, help="Only list dependencies declared directly in Gemfile/package.json.")
@click.option("--package-manager", type=click.Choice(['auto', 'npm', 'yarn'], case_sensitive=False), default='auto', show_default=True, help="Tool used for JavaScript packages.")
@click.option("--format", "output_format", type=click.Choice(['text', 'json'], case_sensitive=False), default='text', show_default=True, help="Output format.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to a YAML config file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def scan(project_path, gems_only, packages_only, sort_by, ascending, direct_only, package_manager, output_format, config_path, verbose):
    """Scans the project for vulnerable and outdated dependencies."""
    _setup_logging(verbose)
    if gems_only and packages_only:
        raise click.UsageError("--gems-only and --packages-only are mutually exclusive.")
    project = pathlib.Path(project_path)
    settings = load_settings(config_path, project)
    scan_gems = not packages_only
    scan_packages = not gems_only

    scanner = Scanner(
        project_path=project,
        settings=settings,
        package_manager=resolve_package_manager(package_manager),
        progress=_echo_progress if output_format == 'text' else None,
    )
    if output_format == 'text':
        click.echo(f"🔍 Scanning project at: {project}\n", err=True)
    result = scanner.scan(gems=scan_gems, packages=scan_packages)

    sort_key = sort_by or settings.sort_by
    descending = False if ascending else settings.sort_desc
    gem_versions = sort_records(result.gem_versions, sort_key, descending, direct_only)
    package_versions = sort_records(result.package_versions, sort_key, descending, direct_only)

    if output_format == 'json':
        print_json_report(result, gem_versions, package_versions)
    else:
        print_text_report(result, gem_versions, package_versions, gems=scan_gems, packages=scan_packages)
    sys.exit(1 if result.has_failures else 0)


if __name__ == "__main__":
    cli()
