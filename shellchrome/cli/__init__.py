"""ShellChrome CLI."""

from shellchrome.cli.main import cli, main
from shellchrome.cli.shell import CommandShell

__all__ = ["cli", "main", "CommandShell"]
