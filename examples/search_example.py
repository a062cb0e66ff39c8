#!/usr/bin/env python3
"""
Search Example
==============

Snapshot a page, find the search box by role, type a query and
submit it, all through uids.

Usage:
    python examples/search_example.py
"""

from shellchrome import Session
from shellchrome.core.config import ShellChromeConfig
from shellchrome.core.errors import ShellChromeError


def main():
    """Search Wikipedia from a headless browser."""

    print("=" * 60)
    print("🌐 ShellChrome - Search Example")
    print("=" * 60)
    print()

    with Session(config=ShellChromeConfig(headless=True)) as session:
        try:
            session.navigate("en.wikipedia.org")
            snapshot = session.take_snapshot()

            search = next(
                (r for r in snapshot.interactive_records() if r.role in ("searchbox", "combobox", "textbox")),
                None,
            )
            if search is None:
                print("❌ No search box found")
                return

            print(f"Search box: {search}")
            session.fill(search.uid, "Accessibility tree")
            session.press_key("Enter")
            session.wait_for("Accessibility", timeout_ms=10000)

            print()
            print("Visible text after search:")
            for record in session.list_elements_for_visual_scan()[:15]:
                print(f"  {record}")

            session.screenshot("./image.png")
            print()
            print("✅ Screenshot saved to ./image.png")
        except ShellChromeError as e:
            print(f"❌ Error: {e}")


if __name__ == "__main__":
    main()
