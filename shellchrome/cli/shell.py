"""
Command Shell - the interactive command loop.

Parses one short command per line and maps it onto a ``Session``.
Errors are reported and the loop keeps going; only a lost browser
session ends it.
"""

from typing import Callable, Dict, List, Optional
import logging
import re
import time

from rich.console import Console
from rich.table import Table

from shellchrome.core.config import save_config
from shellchrome.core.errors import DriverFailure, ShellChromeError
from shellchrome.core.session import Session

logger = logging.getLogger(__name__)

FILL_PATTERN = re.compile(r"^(t|fill|f)\s+(\S+)\s+(.+)$", re.IGNORECASE)
HREF_PREVIEW_LENGTH = 50
NETWORK_PREVIEW_COUNT = 20
LINK_LINE = re.compile(r"link:\s*([^\[\n→=]+)")

HELP_ROWS = [
    ("Tabs", "o <url>", "Open a new tab (https:// added when missing)"),
    ("Tabs", "q [id]", "Close the current tab (or tab id)"),
    ("Tabs", "p", "List open tabs"),
    ("Tabs", "w <id>", "Switch to a tab"),
    ("Tabs", "n <url>", "Navigate the current tab"),
    ("View", "l", "Snapshot the page and list all elements"),
    ("View", "lc", "Snapshot the page and list interactive elements"),
    ("View", "v", "List visible text elements (ocr_ uids)"),
    ("View", "s [path]", "Save a screenshot (default ./image.png)"),
    ("Act", "c <uid>", "Click an element"),
    ("Act", "t <uid> <text>", "Replace an input's text"),
    ("Act", "k <key>", "Press a key (Enter, Tab, Control+A ...)"),
    ("Act", "hover <uid>", "Hover over an element"),
    ("Act", "wait <text> [ms]", "Wait for text to appear"),
    ("Act", "sl <seconds>", "Pause (e.g. sl 1.5)"),
    ("Other", "js <code>", "Evaluate JavaScript in the page"),
    ("Other", "log", "Show browser console messages"),
    ("Other", "net", "List network requests of the current tab"),
    ("Other", "status", "Show session status"),
    ("Other", "clear", "Clear the screen"),
    ("Other", "ui [on|off]", "Show or hide the browser window on next start"),
    ("Other", "h", "Show this help"),
    ("Other", "x", "Exit"),
]


def shorten(text: str, limit: int = HREF_PREVIEW_LENGTH) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class CommandShell:
    """
    Read-eval loop over a Session.

    Example:
        >>> shell = CommandShell(session)
        >>> shell.execute("o example.com")
        True
    """

    def __init__(
        self,
        session: Session,
        console: Optional[Console] = None,
        config_path: Optional[str] = None,
        paged: bool = False,
    ):
        self.session = session
        self.console = console or Console()
        self.config_path = config_path
        self.paged = paged
        self._handlers: Dict[str, Callable[[List[str]], Optional[bool]]] = {}
        for names, handler in [
            (("help", "h", "?"), self._help),
            (("exit", "quit", "x"), self._exit),
            (("open", "o"), self._open),
            (("close", "q"), self._close),
            (("pages", "list", "ls", "p"), self._pages),
            (("switch", "sw", "w"), self._switch),
            (("navigate", "nav", "go", "n"), self._navigate),
            (("elements", "els", "e", "l"), self._elements),
            (("lc",), self._interactive),
            (("v", "visual"), self._visual),
            (("screenshot", "shot", "s"), self._screenshot),
            (("click", "c"), self._click),
            (("key", "k"), self._press),
            (("hover",), self._hover),
            (("wait",), self._wait),
            (("sleep", "sl"), self._sleep),
            (("eval", "js"), self._eval),
            (("console", "log"), self._console),
            (("network", "net"), self._network),
            (("clear",), self._clear),
            (("status",), self._status),
            (("ui",), self._ui),
        ]:
            for name in names:
                self._handlers[name] = handler

    def run(self, read_line: Optional[Callable[[str], str]] = None) -> None:
        """Prompt until exit, end of input, or a lost browser session."""
        read_line = read_line or self.console.input
        while True:
            try:
                line = read_line("> ")
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        """
        Run one command line.

        Returns:
            False when the loop should stop
        """
        line = line.strip()
        if not line:
            return True

        try:
            fill = FILL_PATTERN.match(line)
            if fill:
                self._fill(fill.group(2), fill.group(3))
                return True

            parts = line.split()
            command, args = parts[0].lower(), parts[1:]
            handler = self._handlers.get(command)
            if handler is None:
                self.console.print(f"[yellow]Unknown command: {command}. Type h for help.[/yellow]")
                return True
            return handler(args) is not False
        except DriverFailure as e:
            self.console.print(f"[red]❌ {e}[/red]", highlight=False)
            return not e.fatal
        except ShellChromeError as e:
            self.console.print(f"[red]❌ {e}[/red]", highlight=False)
            return True
        except ValueError as e:
            self.console.print(f"[yellow]{e}[/yellow]", highlight=False)
            return True

    def _print_lines(self, lines: List[str]) -> None:
        if self.paged and len(lines) > self.console.height:
            with self.console.pager():
                for line in lines:
                    self.console.print(line, markup=False, highlight=False)
        else:
            for line in lines:
                self.console.print(line, markup=False, highlight=False)

    # --- Commands ---

    def _help(self, args: List[str]) -> None:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Group", style="dim")
        table.add_column("Command", style="green")
        table.add_column("Description")
        for row in HELP_ROWS:
            table.add_row(*row)
        self.console.print(table)

    def _exit(self, args: List[str]) -> bool:
        return False

    def _open(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: o <url>")
        page = self.session.open(args[0])
        self.console.print(f"[green]✅ Opened page {page.id}:[/green] {page.url or args[0]}")

    def _close(self, args: List[str]) -> None:
        page_id = int(args[0]) if args else None
        current = self.session.close_page(page_id)
        if current is not None:
            self.console.print(f"[green]✅ Closed. Current page: {current.id}[/green]")
        else:
            self.console.print("[green]✅ Closed.[/green]")

    def _pages(self, args: List[str]) -> None:
        pages = self.session.list_pages()
        if not pages:
            self.console.print("[dim](no pages) Use 'o <url>' to open one, e.g. o example.com[/dim]")
            return
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", justify="right")
        table.add_column("URL")
        table.add_column("", justify="center")
        for page in pages:
            table.add_row(str(page.id), page.url or page.title, "[green]current[/green]" if page.selected else "")
        self.console.print(table)

    def _switch(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: w <id>")
        page = self.session.switch_page(int(args[0]))
        self.console.print(f"[green]✅ Switched to page {page.id}:[/green] {page.url}")

    def _navigate(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: n <url>")
        url = self.session.navigate(args[0])
        self.console.print(f"[green]✅ Navigated to[/green] {url}")

    def _elements(self, args: List[str]) -> None:
        snapshot = self.session.take_snapshot()
        hrefs = self.session.link_hrefs() if not snapshot.is_empty else {}
        self._print_lines([self._annotate(line, hrefs) for line in snapshot.render().splitlines()])

    def _interactive(self, args: List[str]) -> None:
        snapshot = self.session.take_snapshot()
        records = snapshot.interactive_records()
        if not records:
            self.console.print("[dim]No interactive elements found.[/dim]")
            return
        hrefs = self.session.link_hrefs()
        self._print_lines([self._annotate(str(record), hrefs) for record in records])

    def _annotate(self, line: str, hrefs: Dict[str, str]) -> str:
        match = LINK_LINE.search(line)
        if match:
            href = hrefs.get(match.group(1).strip())
            if href:
                return f"{line} → {shorten(href)}"
        return line

    def _visual(self, args: List[str]) -> None:
        records = self.session.list_elements_for_visual_scan()
        if not records:
            self.console.print("[dim]No visible text elements found.[/dim]")
            return
        self._print_lines([str(record) for record in records])

    def _screenshot(self, args: List[str]) -> None:
        path = args[0] if args else self.session.config.screenshot_path
        data = self.session.screenshot(path)
        self.console.print(f"[green]✅ Screenshot saved to {path}[/green] [dim]({len(data)} bytes)[/dim]")

    def _click(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: c <uid>")
        result = self.session.click(args[0])
        message = f"[green]✅ Clicked {args[0]}[/green]"
        switched = (result.metadata or {}).get("switched_to_page")
        if switched is not None:
            message += f" [dim](switched to new page {switched})[/dim]"
        self.console.print(message)

    def _fill(self, uid: str, text: str) -> None:
        self.session.fill(uid, text)
        self.console.print(f"[green]✅ Filled {uid}[/green]")

    def _press(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: k <key>")
        key = " ".join(args)
        self.session.press_key(key)
        self.console.print(f"[green]✅ Pressed {key}[/green]")

    def _hover(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: hover <uid>")
        self.session.hover(args[0])
        self.console.print(f"[green]✅ Hovering over {args[0]}[/green]")

    def _wait(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: wait <text> [ms]")
        timeout_ms = int(args[1]) if len(args) > 1 else None
        self.session.wait_for(args[0], timeout_ms)
        self.console.print(f"[green]✅ Found {args[0]!r}[/green]")

    def _sleep(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: sl <seconds>")
        seconds = float(args[0])
        if seconds < 0:
            raise ValueError("Sleep duration must be positive")
        time.sleep(seconds)

    def _eval(self, args: List[str]) -> None:
        if not args:
            raise ValueError("Usage: js <code>")
        result = self.session.evaluate(" ".join(args))
        self.console.print(repr(result), markup=False)

    def _console(self, args: List[str]) -> None:
        messages = self.session.console_messages()
        if not messages:
            self.console.print("[dim](no console messages)[/dim]")
            return
        for message in messages:
            self.console.print(f"[{message.get('level', 'INFO')}] {message.get('message', '')}", markup=False)

    def _network(self, args: List[str]) -> None:
        requests = self.session.network_requests()
        if not requests:
            self.console.print("[dim](no network requests)[/dim]")
            return
        for request in requests[:NETWORK_PREVIEW_COUNT]:
            self.console.print(f"{request['method']} {request['url']}", markup=False, highlight=False)
        if len(requests) > NETWORK_PREVIEW_COUNT:
            self.console.print(f"[dim]... {len(requests) - NETWORK_PREVIEW_COUNT} more[/dim]")

    def _clear(self, args: List[str]) -> None:
        self.console.clear()

    def _status(self, args: List[str]) -> None:
        status = self.session.status()
        table = Table(show_header=False, box=None)
        table.add_row("[bold]Mode:[/bold]", "headless" if status["headless"] else "UI")
        table.add_row("[bold]Pages:[/bold]", str(status["pages"]))
        table.add_row("[bold]Current:[/bold]", f"{status['current_page']} {status['url'] or ''}")
        table.add_row("[bold]Snapshot:[/bold]", f"{status['snapshot_nodes']} nodes")
        self.console.print(table)

    def _ui(self, args: List[str]) -> None:
        if not args:
            mode = "headless (hidden window)" if self.session.config.headless else "UI (visible window)"
            self.console.print(f"Current mode: {mode}. Use 'ui on' or 'ui off'.")
            return
        choice = args[0].lower()
        if choice in ("on", "true", "1"):
            headless = False
        elif choice in ("off", "false", "0"):
            headless = True
        else:
            raise ValueError("Usage: ui [on|off]")
        save_config(self.config_path, headless=headless)
        self.console.print(
            f"[green]✅ Saved: {'headless' if headless else 'UI'} mode.[/green] [dim]Takes effect on next start.[/dim]"
        )
