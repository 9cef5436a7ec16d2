"""Interface for interacting with the user (input/output).

Defines the contract for displaying feed items, information, errors and
warnings, allowing different UI implementations (e.g., console, GUI).
"""

import abc
from typing import Any, List, Sequence

from ledgerfeed.domain.models.feed import ResolvedItem


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_items(self, items: Sequence[ResolvedItem], **kwargs: Any) -> None:
        """Displays a list of resolved feed items.

        Args:
            items: The items to render.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The text to display.
            **kwargs: Additional arguments for formatting (e.g., title, style).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    def display_links(self, links: List[str], **kwargs: Any) -> None:
        """Displays an ordered list of links (e.g., share fallbacks)."""
        for link in links:
            self.display_output(link, **kwargs)
