"""
Terminal rendering for compiled schema definitions.

Takes the dictionary produced by `recordmapper.main.describe_definition` and
prints one row per key with its categories and the column it is read from.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _categories(key: str, described: Dict[str, Any]) -> str:
    keys = described["keys"]
    parts = [name for name in ("viewable", "actionable") if key in keys[name]]
    if key in keys["pointers"]:
        parts.append(f"pointer → {keys['pointers'][key]['className']}")
    if key in keys["files"]:
        parts.append("file")
    return ", ".join(parts)


def print_definition(described: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a described definition as a rich table.

    View keys come first in projection order; actionable keys that are not
    viewed follow. Joins are listed in the caption.
    """
    console = console or Console()

    ordered: List[str] = list(described["view"])
    ordered += [key for key in described["keys"]["actionable"] if key not in described["view"]]

    joins = described["joins"]
    caption = None
    if joins:
        caption = " │ ".join(f"{join['alias']} ← {join['className']} via {join['via']}" for join in joins)

    table = Table(
        title=f"{described['className']} [dim]({described['source']})[/dim]",
        box=box.ROUNDED,
        caption=caption,
    )
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Column", style="green")
    table.add_column("Categories", style="magenta")

    for key in ordered:
        table.add_row(key, described["view"].get(key, "-"), _categories(key, described))

    console.print(table)


__all__ = ["print_definition"]
