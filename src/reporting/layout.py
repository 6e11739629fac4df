"""
Layout estimation shared by the report renderers.

Image scaling preserves aspect ratio exactly. Page breaks are decided from the
accumulated content height, never from timing or I/O.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ScaledDimension:
    """Target size of an image after scaling."""
    width: float
    height: float


def scale(native_width: float, native_height: float, target_width: float) -> ScaledDimension:
    """
    Scale an image to ``target_width`` keeping its aspect ratio.

    Args:
        native_width: Native pixel width (must be > 0)
        native_height: Native pixel height (must be > 0)
        target_width: Width to render at, in the caller's unit

    Returns:
        ScaledDimension in the same unit as ``target_width``

    Raises:
        ValueError: If a native dimension is not positive
    """
    if native_width <= 0 or native_height <= 0:
        raise ValueError(
            f"Native image dimensions must be positive, got {native_width}x{native_height}"
        )
    return ScaledDimension(
        width=target_width,
        height=target_width * native_height / native_width,
    )


def needs_break(cursor: float, block_height: float, page_limit: float) -> bool:
    """True when a block starting at ``cursor`` would run past ``page_limit``."""
    return cursor + block_height > page_limit


def rows_spanned(height_px: float, row_height_px: float) -> int:
    """Number of worksheet rows an anchored image of ``height_px`` covers."""
    if row_height_px <= 0:
        raise ValueError("Row height must be positive")
    return max(1, math.ceil(height_px / row_height_px))


class LayoutCursor:
    """
    Vertical cursor for one paginated render pass.

    Positions grow downwards from ``top`` to ``limit``. A block that does not fit
    triggers a new page, unless the page is still empty: an oversized block is
    then placed alone instead of being retried forever.
    """

    def __init__(
        self,
        top: float,
        limit: float,
        on_new_page: Optional[Callable[[], None]] = None,
    ):
        if limit <= top:
            raise ValueError("Page limit must lie below the top margin")
        self.top = top
        self.limit = limit
        self.on_new_page = on_new_page
        self.cursor = top
        self.page_count = 1
        self._placed = False

    @property
    def at_page_top(self) -> bool:
        return not self._placed

    @property
    def remaining(self) -> float:
        return max(0.0, self.limit - self.cursor)

    @property
    def page_height(self) -> float:
        return self.limit - self.top

    def new_page(self) -> None:
        if self.on_new_page is not None:
            self.on_new_page()
        self.page_count += 1
        self.cursor = self.top
        self._placed = False

    def ensure(self, height: float) -> None:
        """Break the page now unless ``height`` still fits (keeps blocks together)."""
        if not self.at_page_top and needs_break(self.cursor, height, self.limit):
            self.new_page()

    def reserve(self, height: float) -> float:
        """
        Claim ``height`` for the next block, breaking the page first if needed.

        Returns:
            Position of the top edge of the block
        """
        self.ensure(height)
        position = self.cursor
        self.cursor += height
        self._placed = True
        return position

    def advance(self, height: float) -> None:
        """Move down without placing content (spacing)."""
        self.cursor += height
