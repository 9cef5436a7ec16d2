import logging
from typing import Any, List, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ledgerfeed.domain.interfaces.user_interface import UserInterface
from ledgerfeed.domain.models.common import format_address
from ledgerfeed.domain.models.feed import ResolvedItem

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 80


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_items(self, items: Sequence[ResolvedItem], **kwargs: Any) -> None:
        """Displays resolved items as a table.

        Args:
            items: The items to render.
            **kwargs: Additional arguments including:
                - title: Table title (default: "Feed")
                - start_index: Number of the first row (default: 1)
        """
        title = kwargs.get("title", "Feed")
        start_index = kwargs.get("start_index", 1)
        logger.debug(f"display_items called: title={title}, count={len(items)}")

        if not items:
            self.display_info("No items to show.")
            return

        table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Name", style="bold white")
        table.add_column("Author", style="green")
        table.add_column("Item", style="dim")
        table.add_column("Description", style="white")

        for i, item in enumerate(items, start_index):
            description = item.description or ""
            if len(description) > MAX_DESCRIPTION_LENGTH:
                description = description[:MAX_DESCRIPTION_LENGTH - 3] + "..."
            table.add_row(
                str(i),
                item.name,
                item.author_display_name,
                f"{format_address(item.contract_ref)} #{item.item_id}",
                description,
            )

        self.console.print(table)

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays output text to the user.

        Args:
            output: The string to display.
            **kwargs: Additional arguments including:
                - title: The panel title; without one the text is printed plainly.
        """
        title = kwargs.get("title")
        if title:
            self.console.print(Panel(
                Text(str(output), style="white"),
                title=f"[bold white]{title}[/bold white]",
                title_align="left",
                border_style="blue",
                box=ROUNDED,
                padding=(0, 1),
            ))
        else:
            # soft_wrap keeps long links on one line so they stay clickable
            self.console.print(str(output), soft_wrap=True)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message.

        Args:
            info_message: The informational message to display.
        """
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message.

        Args:
            warning_message: The warning message to display.
        """
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_links(self, links: List[str], **kwargs: Any) -> None:
        """Displays an ordered list of links, preferred first."""
        table = Table(show_header=False, box=SIMPLE, padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Link", style="white", overflow="fold")
        for i, link in enumerate(links, 1):
            table.add_row(str(i), link)
        title = kwargs.get("title")
        if title:
            self.console.print(Text(title, style="bold cyan"))
        self.console.print(table)
