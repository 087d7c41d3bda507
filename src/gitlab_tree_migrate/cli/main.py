"""Main CLI entry point for the GitLab tree migration tool."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config.config import Config
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.results import MigrationSummary

console = Console()

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.gitlab-tree-migrate.yaml']


@click.group()
@click.version_option(version=__version__, prog_name='gitlab-tree-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """GitLab Tree Migration Tool - Copy a group tree and its projects to another GitLab instance."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]GitLab Tree Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(
        f'[yellow]Please edit {output} with your GitLab instance details[/yellow]'
    )


@cli.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Replicate the group tree and import every project."""
    console.print(
        Panel.fit(
            '[bold blue]GitLab Tree Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        engine = MigrationEngine(config)
        with console.status('[blue]Migration in progress...'):
            summary = engine.migrate()
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    console.print('[green]✓[/green] Migration completed')
    _display_migration_summary(summary)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check that both GitLab instances are reachable."""
    console.print(
        Panel.fit(
            '[bold cyan]GitLab Tree Migration Tool[/bold cyan]\nValidating setup...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        engine = MigrationEngine(config)
        try:
            engine.test_connectivity()
        finally:
            engine.close()
    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    console.print('[green]✓[/green] Connectivity validation passed')
    console.print('[green]✓[/green] Configuration validation completed')


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]GitLab Tree Migration Tool[/bold magenta]\n'
            'Migration Configuration',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    settings = config.migration
    table = Table(title='Migration Configuration')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('Source URL', config.source.url)
    table.add_row('Destination URL', config.destination.url)
    table.add_row('Target Namespace', settings.target_namespace)
    table.add_row('Source Root Namespace', settings.source_root)
    table.add_row('Export Poll Interval', f'{settings.export_poll_interval:g}s')
    table.add_row('Export Timeout', f'{settings.export_timeout:g}s')
    table.add_row('Import Max Retries', str(settings.import_max_retries))
    table.add_row('Import Initial Delay', f'{settings.import_initial_delay:g}s')

    console.print(table)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    try:
        return Config.from_env()
    except ValueError:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"gitlab-tree-migrate init" to create one.'
        )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)
    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Entity Type', style='cyan')
    table.add_column('Total', style='blue')
    table.add_column('Successful', style='green')
    table.add_column('Failed', style='red')
    table.add_column('Skipped', style='yellow')

    for entity_type, counts in summary.results_by_type.items():
        table.add_row(
            entity_type.replace('_', ' ').title(),
            str(counts['total']),
            str(counts['successful']),
            str(counts['failed']),
            str(counts['skipped']),
        )

    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    errors = summary.failures()
    if errors:
        console.print(f'\n[red]Errors ({len(errors)}):[/red]')
        for result in errors[:5]:
            console.print(
                f'  • {result.entity_type} {result.entity_path or result.entity_id}: '
                f'{result.error_message}'
            )
        if len(errors) > 5:
            console.print(f'  ... and {len(errors) - 5} more errors')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
