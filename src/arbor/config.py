"""Tree model configuration."""

from __future__ import annotations

from dataclasses import dataclass

from arbor.exceptions import TreeConfigError


@dataclass(frozen=True)
class TreeConfig:
    """Settings fixed for the lifetime of a TreeModel.

    Attributes:
        display_field: Record field used for labels and search matching
        page_size: Initial number of root items per page
        multi_select: Whether click selection adds to the selection
        show_pagination: When False, the page is the whole filtered forest
        expand_all: Expand every node of the first page at construction

    Raises:
        TreeConfigError: If display_field is empty or page_size is not positive
    """

    display_field: str = "name"
    page_size: int = 10
    multi_select: bool = False
    show_pagination: bool = True
    expand_all: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.display_field, str) or not self.display_field:
            raise TreeConfigError(
                f"Invalid display_field: {self.display_field!r}\n\n"
                f"  -> The display field must be a non-empty string naming a record field"
            )
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size <= 0:
            raise TreeConfigError(
                f"Invalid page_size: {self.page_size!r}\n\n"
                f"  -> Page size must be a positive integer\n\n"
                f"How to fix:\n"
                f"  Use page_size=10 or any value >= 1"
            )
