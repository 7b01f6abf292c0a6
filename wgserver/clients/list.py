"""List and query WireGuard clients."""

from typing import List, Tuple

from rich.console import Console
from rich.table import Table

from ..config import Settings
from ..models import ClientRecord
from ..registry import ClientStore

DATE_FORMAT = "%Y-%m-%d %H:%M"


def list_clients(settings: Settings) -> List[ClientRecord]:
    """Registered clients in the order they were added."""
    return ClientStore(settings.registry_path).list()


def client_rows(records: List[ClientRecord]) -> List[Tuple[str, str, str]]:
    """(name, address, added) display rows."""
    return [(r.name, r.address, r.created.strftime(DATE_FORMAT)) for r in records]


def print_clients(settings: Settings, console: Console = None) -> None:
    """Print formatted client list."""
    console = console or Console()
    rows = client_rows(list_clients(settings))

    if not rows:
        console.print("No clients found")
        return

    table = Table(title="WireGuard Clients", title_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("IP Address")
    table.add_column("Added", justify="center")

    for row in rows:
        table.add_row(*row)

    console.print(table)
