#!/usr/bin/env python3
"""
Main CLI entry point for the forge domain admin tools.
"""
import logging
import sys

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from domain_admin import __version__
from domain_admin.api.client import ForgeClient
from domain_admin.api.webui import WebSession
from domain_admin.config import load_config, load_env
from domain_admin.core.classifier import ArchiveClassifier
from domain_admin.core.codec import DocumentWriter, encode, read_document
from domain_admin.core.discovery import Discovery
from domain_admin.core.engine import ReconciliationEngine, ResultStatus
from domain_admin.core import filters
from domain_admin.errors import DomainAdminError

console = Console()
err_console = Console(stderr=True)

DATE = click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"])


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)]
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def fail(message: str):
    err_console.print(f"[red]❌ Error: {message}[/red]")
    sys.exit(1)


class AppContext:
    """Settings and lazily built backends shared by the commands."""

    def __init__(self, config: dict):
        self.config = config
        self._client = None
        self._session = None

    @property
    def forge(self) -> dict:
        return self.config['forge']

    @property
    def client(self) -> ForgeClient:
        if self._client is None:
            self._client = ForgeClient(
                self.forge['site'],
                user=self.forge.get('user'),
                password=self.forge.get('password'),
                insecure=bool(self.forge.get('insecure')),
                timeout=float(self.forge.get('timeout') or 30.0)
            )
        return self._client

    @property
    def session(self) -> WebSession:
        if self._session is None:
            self._session = WebSession(
                self.forge['site'],
                self.forge.get('user'),
                self.forge.get('password'),
                insecure=bool(self.forge.get('insecure')),
                timeout=float(self.forge.get('timeout') or 30.0)
            )
        return self._session

    def classifier(self) -> ArchiveClassifier:
        return ArchiveClassifier(self.session)

    def close(self):
        if self._client is not None:
            self._client.close()
        if self._session is not None:
            self._session.close()


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', default="config.yaml", help="Path to config file")
@click.option('--site', help="Forge site URL (overrides config)")
@click.option('--user', help="Admin user name (overrides config)")
@click.option('--password', help="Admin password (overrides config)")
@click.option('--insecure', is_flag=True, help="Do not verify TLS certificates")
@click.option('--verbose', '-v', is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config, site, user, password, insecure, verbose):
    """Bulk management of project mailing lists."""
    setup_logging(verbose)
    load_env()
    settings = load_config(config)
    overrides = {'site': site, 'user': user, 'password': password, 'insecure': insecure or None}
    for key, value in overrides.items():
        if value is not None:
            settings['forge'][key] = value.rstrip('/') if key == 'site' else value

    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command()
@pass_app
def ping(app):
    """Check that the project API answers."""
    with err_console.status("[bold green]Contacting project API..."):
        ok = app.client.ping()
    if not ok:
        fail(f"No answer from {app.client.base_url}")
    console.print(f"[green]✅ {app.client.base_url} is up[/green]")


@cli.command('show-config')
@click.option('--show-password', is_flag=True, help="Show the password (be careful!)")
@pass_app
def show_config(app, show_password):
    """Show the effective configuration."""
    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")

    for section, settings in app.config.items():
        for key, value in settings.items():
            if key == 'password' and value and not show_password:
                value = "•" * 8
            table.add_row(f"{section}.{key}", "[red]NOT SET[/red]" if value is None else str(value))
    console.print(table)


@cli.command()
@click.option('--start', default=1, show_default=True, type=click.IntRange(min=1), help="First page")
@click.option('--length', type=click.IntRange(min=1), help="Number of pages (default: all)")
@click.option('--page-size', type=click.IntRange(min=1), help="Projects per page")
@click.option('--no-classify', is_flag=True, help="Skip archive classification through the web UI")
@click.option('--output', '-o', default='-', help="Output file (default: stdout)")
@pass_app
def find(app, start, length, page_size, no_classify, output):
    """Discover projects with mailing lists and write a command file."""
    page_size = page_size or app.config['admin'].get('page_size')
    classifier = None if no_classify else app.classifier()
    discovery = Discovery(app.client, classifier)
    try:
        with click.open_file(output, 'w') as stream:
            written = discovery.discover(DocumentWriter(stream), start, length, page_size, not no_classify)
    except (DomainAdminError, httpx.HTTPError) as e:
        fail(str(e))
    err_console.print(f"[green]✅ {written} projects with lists written[/green]")


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--force', is_flag=True, help="Delete lists even if they have messages")
@click.option('--dry-run', is_flag=True, help="Report what would be done without changing anything")
@pass_app
def execute(app, path, force, dry_run):
    """Execute the command in a command file."""
    engine = ReconciliationEngine(
        app.client,
        app.classifier(),
        dry_run=dry_run,
        max_tries=int(app.config['admin'].get('max_tries') or 3),
        console=console
    )
    try:
        results = engine.execute(read_document(path), force=force)
    except (DomainAdminError, httpx.HTTPError) as e:
        fail(str(e))

    failed = sum(1 for r in results if r.status == ResultStatus.FAILED)
    done = sum(1 for r in results if r.status == ResultStatus.DONE)
    err_console.print(f"{done} done, {len(results) - done - failed} skipped, {failed} failed")


# ============================================================================
# FILTERS
# ============================================================================

@cli.group('filter')
def filter_group():
    """Filter a command file, keeping its header."""
    pass


def _run_filter(input_path: str, output: str, apply):
    try:
        document = read_document(input_path)
        result = apply(document)
    except DomainAdminError as e:
        fail(str(e))
    with click.open_file(output, "w") as stream:
        stream.write(encode(result))


def _filter_options(func):
    func = click.option('--output', '-o', default='-', help="Output file (default: stdout)")(func)
    return click.argument('input_path', type=click.Path(exists=True, dir_okay=False))(func)


@filter_group.command('created-before')
@click.argument('date', type=DATE)
@_filter_options
def filter_created_before(date, input_path, output):
    """Keep lists created before DATE."""
    _run_filter(input_path, output, lambda d: filters.filter_lists(
        d, filters.created_before(date), f"created_before {date.date().isoformat()}"))


@filter_group.command('stale-before')
@click.argument('date', type=DATE)
@_filter_options
def filter_stale_before(date, input_path, output):
    """Keep lists last updated before DATE."""
    _run_filter(input_path, output, lambda d: filters.filter_lists(
        d, filters.archive_stale_before(date), f"archive_stale_before {date.date().isoformat()}"))


@filter_group.command('missing')
@_filter_options
def filter_missing(input_path, output):
    """Keep lists missing from the list service."""
    _run_filter(input_path, output, lambda d: filters.filter_lists(
        d, filters.missing_from_mlm(), "missing_from_mlm"))


@filter_group.command('empty')
@_filter_options
def filter_empty(input_path, output):
    """Keep lists whose archive has no messages."""
    _run_filter(input_path, output, lambda d: filters.filter_lists(
        d, filters.archive_empty(), "archive_empty"))


@filter_group.command('name-not')
@click.argument('name')
@_filter_options
def filter_name_not(name, input_path, output):
    """Drop lists called NAME."""
    _run_filter(input_path, output, lambda d: filters.filter_lists(
        d, filters.name_not_equal(name), f"name_not_equal {name}"))


@filter_group.command('issues')
@click.option('--present', is_flag=True, help="Keep existing 'issues' lists instead of proposing new ones")
@_filter_options
def filter_issues(present, input_path, output):
    """Correlate issue trackers with an 'issues' list."""
    _run_filter(input_path, output, lambda d: filters.filter_projects(
        d, filters.issues_lists(present), f"issues_lists present={str(present).lower()}"))


def main():
    cli()


if __name__ == "__main__":
    main()
