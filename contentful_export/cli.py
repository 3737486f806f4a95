#!/usr/bin/env python3
"""
CLI for the Contentful user export, using rich for console output.
"""

import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn
from rich.prompt import Prompt, Confirm
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DEFAULT_BASE_URL, ExportConfig
from .exporter import ContentfulExporter

console = Console()

EXIT_PARTIAL_EXPORT = 2

def print_banner():
    banner_panel = Panel(
        "[bold white]Contentful Users Export[/bold white]\n\n"
        "Export organization, space and team memberships to CSV/Excel/JSON",
        title="",
        border_style="cyan",
        padding=(1, 2)
    )
    console.print(banner_panel)

def check_credentials(env_file_path: Optional[str] = None, quiet: bool = False, override: bool = False) -> ExportConfig:
    """Load credentials from the .env file, prompting for setup when they are missing."""
    env_file = Path(env_file_path) if env_file_path else Path('.env')
    if not quiet:
        console.print(f"Looking for credentials in: {env_file.absolute()}")

    if env_file_path and not env_file.exists():
        console.print(f"[red]Custom .env file not found: {env_file.absolute()}[/red]")
        sys.exit(1)

    try:
        return ExportConfig.from_env(env_file_path, override=override)
    except ValueError as e:
        console.print(f"\n[yellow]{escape(str(e))}[/yellow]")

    # If using custom env file, don't offer to create default .env
    if env_file_path or quiet:
        sys.exit(1)

    if Confirm.ask("Would you like to create or update your .env file now?"):
        setup_credentials()
        return check_credentials(override=True)
    sys.exit(1)

def setup_credentials():
    """Interactive setup of Contentful credentials."""
    console.print("\n[bold green]Setting up Contentful credentials[/bold green]")

    help_panel = Panel(
        "[bold]You'll need a Content Management API token with organization access:[/bold]\n\n"
        "1. Open Contentful > Account settings > CMA tokens\n"
        "2. Generate a personal access token for an organization owner or admin\n"
        "3. Copy the organization ID from Organization settings\n",
        title="Setup Guide",
        border_style="blue"
    )
    console.print(help_panel)

    api_token = Prompt.ask("Management API token", password=True)
    organization_id = Prompt.ask("Organization ID")
    base_url = Prompt.ask("API base URL", default=DEFAULT_BASE_URL)

    env_content = f"""# Contentful Management API Configuration
CONTENTFUL_MANAGEMENT_API_TOKEN={api_token}
CONTENTFUL_ORGANIZATION_ID={organization_id}
CONTENTFUL_BASE_URL={base_url}
"""

    with open('.env', 'w') as f:
        f.write(env_content)

    console.print("\n[bold green]Credentials saved to .env file[/bold green]")

def display_stats(exporter: ContentfulExporter, output_file: str):
    """Display export statistics and any failed page requests."""
    file_size_kb = os.path.getsize(output_file) / 1024

    table = Table(title="Export Summary", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Output File", output_file)
    table.add_row("File Size", f"{file_size_kb:.1f} KB")
    table.add_row("Users", str(exporter.stats.get('users', 0)))
    table.add_row("Organization Memberships", str(exporter.stats.get('organization_memberships', 0)))
    table.add_row("Space Memberships", str(exporter.stats.get('space_memberships', 0)))
    table.add_row("Teams", str(exporter.stats.get('teams', 0)))
    table.add_row("Page Failures", str(len(exporter.failures)))

    console.print(table)

    if exporter.failures:
        failures_table = Table(title="Failed Page Requests", show_header=True, header_style="bold red")
        failures_table.add_column("URL", style="yellow")
        failures_table.add_column("Skip", style="dim")
        failures_table.add_column("Error", style="white")
        for failure in exporter.failures:
            failures_table.add_row(escape(failure.url), str(failure.skip), escape(failure.error))
        console.print(failures_table)

@click.command()
@click.option('--output', '-o', help='Output filename (optional)')
@click.option('--format', type=click.Choice(['csv', 'excel', 'json']), default='csv', help='Export format')
@click.option('--env', help='Path to custom .env file (default: .env in current directory)')
@click.option('--setup', is_flag=True, help='Setup credentials interactively')
@click.option('--quiet', '-q', is_flag=True, help='Suppress progress output')
@click.option('--strict', is_flag=True, help='Exit with status 2 when any page request failed')
@click.version_option(version=__version__, prog_name="contentful-export")
def main(output: Optional[str], format: str, env: Optional[str], setup: bool, quiet: bool, strict: bool):
    """
    Export Contentful organization users with their roles and teams.

    Every user found in organization memberships, space memberships or
    team memberships gets one row with the columns
    userId, email, name, orgRoles, spaceRoles, teams.

    Examples:
      contentful-export                          # Write contentful_users.csv
      contentful-export --format excel           # Write contentful_users.xlsx
      contentful-export -o audit.csv --strict    # Fail when the export is partial
      contentful-export --env /path/to/my.env    # Use custom .env file
    """

    if not quiet:
        print_banner()

    if setup:
        setup_credentials()
        if not Confirm.ask("Continue with export?", default=True):
            return

    config = check_credentials(env, quiet=quiet, override=setup)

    try:
        exporter = ContentfulExporter(config)

        if not quiet:
            console.print("\n[bold yellow]Starting export...[/bold yellow]")

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeElapsedColumn(),
                console=console,
                expand=True
            ) as progress:

                export_task = progress.add_task("Exporting users...", total=100)

                def update_progress(current: float, total: int, description: str):
                    percentage = (current / total) * 100 if total > 0 else 0
                    # Truncate to a fixed width to prevent bar jumping
                    truncated = description[:40].ljust(40) if len(description) <= 40 else description[:37] + "..."
                    progress.update(export_task, completed=percentage, description=truncated)

                output_file = exporter.export(format, output, progress_callback=update_progress)

                progress.update(export_task, completed=100, description="Export completed!")
        else:
            output_file = exporter.export(format, output)

        if not quiet:
            console.print("\n[bold green]Export completed successfully![/bold green]")
            display_stats(exporter, output_file)
            file_uri = Path(output_file).absolute().as_uri()
            console.print(f"Click to open: [underline][link={file_uri}]{output_file}[/link][/underline]")
        else:
            print(f"Export completed: {output_file}")

    except KeyboardInterrupt:
        console.print("\n[yellow]Export cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Export failed: {escape(str(e))}[/bold red]")
        sys.exit(1)

    if exporter.failures:
        console.print(f"[yellow]Warning: {len(exporter.failures)} page request(s) failed; "
                      f"the export is partial.[/yellow]")
        if strict:
            sys.exit(EXIT_PARTIAL_EXPORT)

if __name__ == "__main__":
    main()
