"""
ShellChrome - Drive a browser from the terminal.

Elements are addressed by short-lived uids taken from an accessibility
snapshot (or a flat visual scan) and re-located on the live page when an
action runs.
"""

__version__ = "0.1.0"

from shellchrome.core.session import Session

__all__ = [
    "Session",
    "__version__",
]
