"""
ShellChrome CLI - Command-line entry points for the terminal browser.
"""

import logging

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def setup_logging(verbose: bool) -> None:
    """Quiet unless --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)-8s [%(name)s] %(message)s",
        force=True,
    )
    # Selenium and urllib3 are noisy at DEBUG
    for name in ("selenium", "urllib3"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.version_option(version="0.1.0", prog_name="shellchrome")
def cli():
    """🌐 ShellChrome - Browse the web from your terminal

    Snapshot pages as numbered element trees and act on them by uid.
    """
    pass


@cli.command()
@click.option('--headless/--headed', default=None, help='Hide or show the browser window (default: config.json)')
@click.option('--url', default=None, help='Page to open on start')
@click.option('--config', 'config_file', default=None, type=click.Path(dir_okay=False),
              help='Config file (default: $SHELLCHROME_CONFIG or ./config.json)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def repl(headless, url, config_file, verbose):
    """
    Start the interactive shell.

    \b
    Examples:

        shellchrome repl --url example.com

        shellchrome repl --headed
    """
    from shellchrome.cli.shell import CommandShell
    from shellchrome.core.config import load_config
    from shellchrome.core.session import Session

    setup_logging(verbose)
    config = load_config(config_file)
    if headless is not None:
        config.headless = headless

    console.print(Panel.fit(
        f"[bold blue]🌐 ShellChrome[/bold blue]\n"
        f"[dim]{'Headless' if config.headless else 'UI'} mode. Type h for help, x to exit.[/dim]",
        border_style="blue"
    ))

    with Session(config=config) as session:
        shell = CommandShell(session, console=console, config_path=config_file, paged=True)
        if url and not shell.execute(f"o {url}"):
            return
        shell.run()

    console.print("[dim]Bye.[/dim]")


@cli.command()
@click.argument('mode', type=click.Choice(['on', 'off']))
@click.option('--config', 'config_file', default=None, type=click.Path(dir_okay=False),
              help='Config file (default: $SHELLCHROME_CONFIG or ./config.json)')
def ui(mode, config_file):
    """Show (on) or hide (off) the browser window on future runs."""
    from shellchrome.core.config import config_path, save_config

    save_config(config_file, headless=(mode == 'off'))
    console.print(f"[green]✅ Saved {'UI' if mode == 'on' else 'headless'} mode to {config_path(config_file)}[/green]")


@cli.command()
def doctor():
    """
    Check that the required packages are installed.
    """
    console.print(Panel.fit(
        f"[bold cyan]🩺 ShellChrome Doctor[/bold cyan]\n"
        f"[dim]System Health Check[/dim]",
        border_style="cyan"
    ))
    console.print()

    dependencies = [
        ("selenium", "Browser - WebDriver and DevTools"),
        ("urllib3", "Browser - Driver transport"),
        ("click", "CLI - Commands"),
        ("rich", "CLI - Output"),
    ]

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Package", style="blue")
    table.add_column("Role", style="dim")
    table.add_column("Status", justify="center")

    all_good = True

    for package, role in dependencies:
        try:
            __import__(package)
            status = "[green]✅ Installed[/green]"
        except ImportError:
            status = "[red]❌ Missing[/red]"
            all_good = False

        table.add_row(package, role, status)

    console.print(table)
    console.print()

    if all_good:
        console.print("[bold green]✅ All dependencies installed! ShellChrome is ready.[/bold green]")
    else:
        console.print("[yellow]⚠️ Some dependencies are missing.[/yellow]")
        console.print("[dim]Install with: pip install shellchrome[/dim]")


@cli.command()
def version():
    """Show version information."""
    from shellchrome import __version__
    console.print(f"ShellChrome v{__version__}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
